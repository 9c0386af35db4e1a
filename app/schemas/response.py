from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
import uuid


def _rid():
    return uuid.uuid4().hex


class SuccessResponse(BaseModel):
    """Envelope for every successful API answer."""
    success: Optional[bool] = Field(default=True)
    request_id: str = Field(default_factory=_rid)
    data: Optional[Any] = None


class ErrorBody(BaseModel):
    code: str
    message: Any
    details: Optional[Any] = None


class ErrorResponse(BaseModel):
    """Envelope for rejected requests; ``error.message`` names the violated rule."""
    success: bool = False
    request_id: str = Field(default_factory=_rid)
    error: ErrorBody

    def body(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
