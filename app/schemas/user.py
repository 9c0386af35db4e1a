import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.user import UserRole

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class UserCreate(BaseModel):
    """A profile for someone the identity provider already knows. ``id`` defaults to a fresh uuid."""
    id: Optional[uuid.UUID] = None
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    name: str = Field(..., min_length=1, max_length=255)
    role: UserRole = UserRole.MANAGER
    department: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=64)
    avatar_url: Optional[str] = Field(None, max_length=1024)
    area_ids: List[uuid.UUID] = Field(default_factory=list)


class UserUpdate(BaseModel):
    """Profile fields a user or admin may edit. Role and activity have their own routes."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    department: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=64)
    avatar_url: Optional[str] = Field(None, max_length=1024)


class RoleUpdate(BaseModel):
    role: UserRole


class ActiveUpdate(BaseModel):
    is_active: bool


class AreaAssignment(BaseModel):
    area_ids: List[uuid.UUID] = Field(default_factory=list)


class AreaRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    name: str
    role: UserRole
    department: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    areas: List[AreaRef] = Field(default_factory=list)
