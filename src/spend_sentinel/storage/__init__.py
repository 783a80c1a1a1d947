"""Persistence adapters for the transaction ledger."""

from spend_sentinel.storage.base import StoreError, TransactionStore
from spend_sentinel.storage.locks import KeyedLock
from spend_sentinel.storage.memory import InMemoryTransactionStore
from spend_sentinel.storage.sql import SqlTransactionStore, create_store_engine

__all__ = [
    "StoreError",
    "TransactionStore",
    "KeyedLock",
    "InMemoryTransactionStore",
    "SqlTransactionStore",
    "create_store_engine",
]
