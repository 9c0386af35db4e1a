import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, status
from app.core.db import init_db, close_db
from app.core.logging import setup_logging
from app.api.v1.items import router as items_router
from app.api.v1.transactions import router as transactions_router
from app.api.v1.categories import router as categories_router
from app.api.v1.areas import router as areas_router
from app.api.v1.dashboard import router as dashboard_router
from app.api.v1.users import router as users_router
from app.consumers.outbox_poller import run_poller
from app.core.config import PROJECT_NAME, VERSION, RUN_OUTBOX_POLLER
from app.core.exception_handlers import setup_exception_handlers

log = logging.getLogger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handles startup and shutdown events."""
    setup_logging()
    log.info(f"Starting {PROJECT_NAME} v{VERSION}...")
    await init_db() # Connect to DB and generate schemas
    poller = asyncio.create_task(run_poller()) if RUN_OUTBOX_POLLER else None
    yield
    if poller:
        poller.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await poller
    await close_db()
    log.info(f"{PROJECT_NAME} stopped.")

app = FastAPI(
    title=PROJECT_NAME,
    version=VERSION,
    lifespan=lifespan,
    # Configure API documentation and paths
    docs_url="/docs",
    redoc_url="/redoc"
)

# Include routers for modular API structure
app.include_router(items_router, prefix="/api/v1/items", tags=["Inventory Items"])
app.include_router(transactions_router, prefix="/api/v1/transactions", tags=["Transactions"])
app.include_router(categories_router, prefix="/api/v1/categories", tags=["Categories"])
app.include_router(areas_router, prefix="/api/v1/areas", tags=["Areas"])
app.include_router(dashboard_router, prefix="/api/v1/dashboard", tags=["Dashboard"])
app.include_router(users_router, prefix="/api/v1/users", tags=["Users"])


setup_exception_handlers(app)

@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """Simple health check endpoint."""
    return {"status": "ok", "app_name": PROJECT_NAME}
