import logging

from tortoise import Tortoise

from app.core.config import DB_URL

log = logging.getLogger("db")

MODELS_MODULES = [
    "app.models.inventory",
    "app.models.transaction",
    "app.models.outbox",
    "app.models.user",
]


def tortoise_config(db_url: str = DB_URL) -> dict:
    """Tortoise settings shared by the API, the poller and the seed script."""
    return {
        "connections": {"default": db_url},
        "apps": {
            "models": {"models": MODELS_MODULES, "default_connection": "default"},
        },
        "use_tz": True,
        "timezone": "UTC",
    }


async def init_db(db_url: str = DB_URL, generate_schemas: bool = True):
    """Opens the connection pool; optionally creates missing tables."""
    try:
        await Tortoise.init(config=tortoise_config(db_url))
        if generate_schemas:
            await Tortoise.generate_schemas(safe=True)
    except Exception as e:
        log.error(f"FATAL ERROR: could not initialise database at {db_url}: {e}")
        # The service must not start without its store
        raise
    log.info("Database ready.")


async def close_db():
    await Tortoise.close_connections()
    log.info("Database connections closed.")
