"""Provides the store, engine and ledger reader to route handlers."""
from functools import lru_cache

from fastapi import Depends

from app.services.ledger import LedgerReader
from app.services.stock_engine import StockReconciliationEngine
from app.stores.base import StockStore
from app.stores.tortoise_store import TortoiseStockStore


@lru_cache
def get_stock_store() -> StockStore:
    return TortoiseStockStore()


def get_engine(store: StockStore = Depends(get_stock_store)) -> StockReconciliationEngine:
    return StockReconciliationEngine(store)


def get_ledger(store: StockStore = Depends(get_stock_store)) -> LedgerReader:
    return LedgerReader(store)
