"""Dictionary-backed transaction store."""

import threading
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Optional

from spend_sentinel.models.transaction import AnomalyState, PersistedTransaction, PolicyStatus
from spend_sentinel.storage.base import StoreError, TransactionStore


class InMemoryTransactionStore(TransactionStore):
    """Keeps records in process memory.

    Records are copied on the way in and out so callers never share state
    with the store.
    """

    def __init__(self) -> None:
        super().__init__()
        self._lock = threading.RLock()
        self._records: dict[str, PersistedTransaction] = {}

    def insert(self, record: PersistedTransaction) -> PersistedTransaction:
        with self._lock:
            if record.id in self._records:
                raise StoreError(f"Transaction {record.id} already exists")
            self._records[record.id] = replace(record)
        return replace(record)

    def get(self, txn_id: str) -> Optional[PersistedTransaction]:
        with self._lock:
            record = self._records.get(txn_id)
            return replace(record) if record else None

    def find(
        self,
        user_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        category: Optional[str] = None,
        merchant: Optional[str] = None,
        amount: Optional[Decimal] = None,
        include_deleted: bool = False,
    ) -> list[PersistedTransaction]:
        with self._lock:
            matches = [
                replace(record)
                for record in self._records.values()
                if record.user_id == user_id
                and (include_deleted or not record.is_deleted)
                and (start is None or record.date >= start)
                and (end is None or record.date <= end)
                and (category is None or record.category == category)
                and (merchant is None or record.merchant == merchant)
                and (amount is None or record.amount == amount)
            ]
        matches.sort(key=lambda r: r.date)
        return matches

    def save_anomaly_state(
        self,
        txn_id: str,
        state: AnomalyState,
        reason: Optional[str] = None,
        comparison: Optional[str] = None,
        force: bool = False,
    ) -> bool:
        with self._lock:
            return self._require(txn_id).apply_anomaly(state, reason, comparison, force)

    def save_policy_status(self, txn_id: str, status: PolicyStatus, rule: Optional[str] = None) -> None:
        with self._lock:
            record = self._require(txn_id)
            record.policy_status = status
            record.policy_rule = rule

    def soft_delete(self, txn_id: str) -> None:
        with self._lock:
            self._require(txn_id).is_deleted = True

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _require(self, txn_id: str) -> PersistedTransaction:
        record = self._records.get(txn_id)
        if record is None:
            raise StoreError(f"Transaction {txn_id} not found")
        return record
