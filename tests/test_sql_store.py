"""Tests for the SQLAlchemy transaction store."""

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from spend_sentinel.models.transaction import AnomalyState, PersistedTransaction, PolicyStatus, RawTransaction
from spend_sentinel.processing.anomaly_detector import AnomalyEngine
from spend_sentinel.processing.deduplicator import Deduplicator
from spend_sentinel.storage.base import StoreError
from spend_sentinel.storage.sql import SqlTransactionStore, TransactionRow


def record(day: date = date(2024, 3, 1), amount: str = "-4.50", merchant: str = "COFFEE SHOP") -> PersistedTransaction:
    return PersistedTransaction(
        user_id="alice",
        date=day,
        merchant=merchant,
        description=merchant,
        amount=Decimal(amount),
        category="dining",
    )


class TestSqlTransactionStore:
    """Tests for SqlTransactionStore."""

    @pytest.fixture
    def store(self, tmp_path: Path) -> SqlTransactionStore:
        """Create a store on a temporary SQLite file."""
        return SqlTransactionStore(url=f"sqlite:///{tmp_path / 'ledger.db'}")

    def test_insert_and_get(self, store: SqlTransactionStore) -> None:
        """Test that a record survives a round trip."""
        saved = store.insert(record())
        loaded = store.get(saved.id)

        assert loaded == saved
        assert loaded is not None and loaded.amount == Decimal("-4.50")

    def test_amount_stored_as_cents(self, store: SqlTransactionStore) -> None:
        """Test the integer cents column."""
        saved = store.insert(record(amount="-1234.56"))

        with Session(store.engine) as session:
            row = session.scalars(select(TransactionRow).where(TransactionRow.id == saved.id)).one()
        assert row.amount_cents == -123456

    def test_get_missing(self, store: SqlTransactionStore) -> None:
        """Test that unknown ids return None."""
        assert store.get("missing") is None

    def test_duplicate_id_raises(self, store: SqlTransactionStore) -> None:
        """Test that inserting the same id twice is a store error."""
        saved = store.insert(record())
        with pytest.raises(StoreError):
            store.insert(saved)

    def test_find_filters(self, store: SqlTransactionStore) -> None:
        """Test date, merchant and amount filters."""
        store.insert(record(day=date(2024, 3, 1)))
        store.insert(record(day=date(2024, 3, 5)))
        store.insert(record(day=date(2024, 3, 9), merchant="BOOKS", amount="-9.00"))

        assert len(store.find("alice")) == 3
        assert len(store.find("alice", start=date(2024, 3, 2))) == 2
        assert len(store.find("alice", end=date(2024, 3, 5), merchant="COFFEE SHOP")) == 2
        assert len(store.find("alice", amount=Decimal("-9"))) == 1
        assert store.find("bob") == []
        assert [r.date for r in store.find("alice")] == [date(2024, 3, 1), date(2024, 3, 5), date(2024, 3, 9)]

    def test_soft_delete(self, store: SqlTransactionStore) -> None:
        """Test that deleted records are hidden unless requested."""
        saved = store.insert(record())
        store.soft_delete(saved.id)

        assert store.find("alice") == []
        assert len(store.find("alice", include_deleted=True)) == 1

    def test_anomaly_state_guard(self, store: SqlTransactionStore) -> None:
        """Test that automated writes never replace a dismissal."""
        saved = store.insert(record())

        assert store.save_anomaly_state(saved.id, AnomalyState.FLAGGED, "unusual", "compared")
        loaded = store.get(saved.id)
        assert loaded is not None
        assert loaded.anomaly_state is AnomalyState.FLAGGED
        assert loaded.anomaly_reason == "unusual"

        assert store.save_anomaly_state(saved.id, AnomalyState.DISMISSED_BY_USER, force=True)
        assert not store.save_anomaly_state(saved.id, AnomalyState.ANALYZED_CLEAN)
        loaded = store.get(saved.id)
        assert loaded is not None and loaded.anomaly_state is AnomalyState.DISMISSED_BY_USER

    def test_clean_clears_texts(self, store: SqlTransactionStore) -> None:
        """Test that a clean result removes earlier flag texts."""
        saved = store.insert(record())
        store.save_anomaly_state(saved.id, AnomalyState.FLAGGED, "unusual", "compared")
        store.save_anomaly_state(saved.id, AnomalyState.ANALYZED_CLEAN)

        loaded = store.get(saved.id)
        assert loaded is not None
        assert loaded.anomaly_reason is None
        assert loaded.anomaly_comparison is None

    def test_policy_status(self, store: SqlTransactionStore) -> None:
        """Test policy status writes."""
        saved = store.insert(record())
        store.save_policy_status(saved.id, PolicyStatus.WARNING, "Approaching daily dining limit")

        loaded = store.get(saved.id)
        assert loaded is not None
        assert loaded.policy_status is PolicyStatus.WARNING
        assert loaded.policy_rule == "Approaching daily dining limit"

    def test_missing_record_raises(self, store: SqlTransactionStore) -> None:
        """Test that writes to unknown ids are store errors."""
        with pytest.raises(StoreError, match="not found"):
            store.save_anomaly_state("missing", AnomalyState.FLAGGED)
        with pytest.raises(StoreError, match="not found"):
            store.soft_delete("missing")

    def test_in_memory_url(self) -> None:
        """Test that an in-memory database keeps its data across sessions."""
        store = SqlTransactionStore(url="sqlite:///:memory:")
        saved = store.insert(record())
        assert store.get(saved.id) is not None

    def test_existing_engine(self) -> None:
        """Test construction from an engine."""
        store = SqlTransactionStore(engine=create_engine("sqlite://"))
        assert store.find("alice") == []

    def test_requires_url_or_engine(self) -> None:
        """Test that a store needs somewhere to live."""
        with pytest.raises(StoreError):
            SqlTransactionStore()

    def test_dedup_and_scan(self, store: SqlTransactionStore) -> None:
        """Test deduplication and anomaly scan on the SQL store."""
        history = [
            RawTransaction(date=date(2024, 5, 1 + i), merchant="BISTRO", description="BISTRO",
                           amount=Decimal(f"-{amount}"), category="dining")
            for i, amount in enumerate(["45", "48", "50", "52", "55", "47", "53", "50", "49", "51"])
        ]
        spike = RawTransaction(date=date(2024, 6, 10), merchant="BISTRO", description="BISTRO",
                               amount=Decimal("-200.00"), category="dining")
        dedup = Deduplicator(store)

        assert dedup.filter_and_save("alice", history + [spike]).saved_count == 11
        assert dedup.filter_and_save("alice", history + [spike]).duplicate_count == 11

        result = AnomalyEngine(store).detect_anomalies("alice", today=date(2024, 6, 20))
        assert result.summary.major == 1
        flagged = [t for t in store.find("alice") if t.anomaly_state is AnomalyState.FLAGGED]
        assert [t.amount for t in flagged] == [Decimal("-200.00")]
