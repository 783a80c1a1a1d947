"""Duplicate detection against the persisted ledger."""

from datetime import timedelta

from spend_sentinel.models.report import DedupResult
from spend_sentinel.models.transaction import PersistedTransaction, RawTransaction
from spend_sentinel.storage.base import StoreError, TransactionStore
from spend_sentinel.utils.logging_config import get_logger

logger = get_logger(__name__)


class Deduplicator:
    """Drops candidates already present in the ledger and saves the rest.

    A candidate is a duplicate of a stored record when all of these match:
    - Same user
    - Same merchant
    - Same signed amount
    - Date within the tolerance window (24 hours by default)
    - The stored record is not soft-deleted

    Existing records are never modified. Candidates in the same batch are
    not compared with each other, so two identical rows in one statement
    are both saved.

    The check and the insert run under the store's keyed lock for
    (user, merchant, amount), so concurrent uploads of the same statement
    cannot both save the same row.
    """

    def __init__(self, store: TransactionStore, window_hours: int = 24):
        """Initialize deduplicator.

        Args:
            store: Ledger to check against and save into.
            window_hours: Date tolerance for a match, in hours.
        """
        self.store = store
        self.window = timedelta(days=window_hours // 24)

    def filter_and_save(self, user_id: str, candidates: list[RawTransaction]) -> DedupResult:
        """Persist every candidate that is not already in the ledger.

        Args:
            user_id: Owner of the candidates.
            candidates: Parsed transactions from one statement.

        Returns:
            DedupResult with saved records and counts.
        """
        result = DedupResult()
        batch_ids: set[str] = set()

        for candidate in candidates:
            record = PersistedTransaction.from_raw(candidate, user_id)
            key = (user_id, record.merchant, record.amount)

            try:
                with self.store.dedup_locks.hold(key):
                    if self._is_duplicate(record, batch_ids):
                        result.duplicate_count += 1
                        logger.debug(f"Skipping duplicate {record.merchant!r} {record.amount} on {record.date}")
                        continue
                    saved = self.store.insert(record)
            except StoreError as e:
                result.failed_count += 1
                logger.warning(f"Could not save transaction {record.merchant!r} on {record.date}: {e}")
                continue

            batch_ids.add(saved.id)
            result.saved_records.append(saved)
            result.saved_count += 1

        logger.info(
            f"Saved {result.saved_count} transactions for user {user_id}, "
            f"skipped {result.duplicate_count} duplicates"
            + (f", {result.failed_count} failed" if result.failed_count else "")
        )
        return result

    def _is_duplicate(self, record: PersistedTransaction, batch_ids: set[str]) -> bool:
        matches = self.store.find(
            record.user_id,
            start=record.date - self.window,
            end=record.date + self.window,
            merchant=record.merchant,
            amount=record.amount,
        )
        return any(match.id not in batch_ids for match in matches)
