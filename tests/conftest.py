import pytest
from unittest.mock import AsyncMock

from app.services.stock_engine import StockReconciliationEngine
from app.testing.memory_store import MemoryStockStore


# --- CORE MOCKING UTILITIES ---

class AsyncContextManagerMock:
    """Mocks 'async with in_transaction() as conn:' to fulfill the async context manager protocol."""
    async def __aenter__(self):
        # Returns a mock connection object
        return object()
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeQuerySet:
    """
    Stands in for a Tortoise QuerySet: any chained call (filter, using_db,
    select_related, order_by, limit...) returns the same object, awaiting it
    yields ``result``, and the terminal calls are AsyncMocks.
    """
    def __init__(self, result=None, update_count=0, exists=False, count=0):
        self.result = result
        self.chain = []
        self.update = AsyncMock(return_value=update_count)
        self.delete = AsyncMock(return_value=update_count)
        self.exists = AsyncMock(return_value=exists)
        self.count = AsyncMock(return_value=count)

    def __getattr__(self, name):
        def chained(*args, **kwargs):
            self.chain.append((name, args, kwargs))
            return self
        return chained

    def __await__(self):
        async def _result():
            return self.result
        return _result().__await__()


# --- SETUP FIXTURES ---

@pytest.fixture
def store():
    return MemoryStockStore()


@pytest.fixture
def engine(store):
    """Engine over the in-memory store, without retry backoff."""
    return StockReconciliationEngine(store, max_attempts=3, backoff_seconds=0)
