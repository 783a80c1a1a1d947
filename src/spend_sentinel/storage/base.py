"""Abstract persistence interface for the transaction ledger."""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Optional

from spend_sentinel.models.transaction import AnomalyState, PersistedTransaction, PolicyStatus
from spend_sentinel.storage.locks import KeyedLock


class StoreError(Exception):
    """Exception raised when the ledger cannot be read or written."""

    pass


class TransactionStore(ABC):
    """Persistence adapter for ledger records.

    Implementations must be safe to call from several threads. Each store
    owns a KeyedLock that the deduplicator uses to make check-then-insert
    atomic per (user, merchant, amount).
    """

    def __init__(self) -> None:
        self.dedup_locks = KeyedLock()

    @abstractmethod
    def insert(self, record: PersistedTransaction) -> PersistedTransaction:
        """Persist a new record.

        Raises:
            StoreError: If the record cannot be written.
        """
        pass

    @abstractmethod
    def get(self, txn_id: str) -> Optional[PersistedTransaction]:
        """Fetch a record by id, including soft-deleted ones."""
        pass

    @abstractmethod
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
        """Query one user's records.

        Every filter given must match. Date bounds are inclusive.

        Returns:
            Matching records ordered by date.
        """
        pass

    @abstractmethod
    def save_anomaly_state(
        self,
        txn_id: str,
        state: AnomalyState,
        reason: Optional[str] = None,
        comparison: Optional[str] = None,
        force: bool = False,
    ) -> bool:
        """Write an anomaly state, see PersistedTransaction.apply_anomaly.

        Returns:
            True if the stored record changed.

        Raises:
            StoreError: If the record does not exist or cannot be written.
        """
        pass

    @abstractmethod
    def save_policy_status(self, txn_id: str, status: PolicyStatus, rule: Optional[str] = None) -> None:
        """Write the policy compliance status of a record.

        Raises:
            StoreError: If the record does not exist or cannot be written.
        """
        pass

    @abstractmethod
    def soft_delete(self, txn_id: str) -> None:
        """Mark a record deleted.

        Raises:
            StoreError: If the record does not exist.
        """
        pass
