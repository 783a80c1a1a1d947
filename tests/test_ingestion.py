"""Tests for end-to-end statement ingestion."""

from datetime import date
from decimal import Decimal
from typing import Any, Optional

import pytest

from spend_sentinel.models.report import PolicyCheckResult
from spend_sentinel.models.transaction import PersistedTransaction, PolicyStatus
from spend_sentinel.processing.ingestion import StatementIngestor
from spend_sentinel.storage.base import StoreError
from spend_sentinel.storage.memory import InMemoryTransactionStore

STATEMENT = (
    b"Date,Description,Credit,Debit,Balance\n"
    b'01/03/2024,"COFFEE SHOP",,4.50,1000.00\n'
    b'02/03/2024,"ACME, INC",250.00,,1250.00\n'
    b"03/03/2024,ELECTRONICS STORE,,349.99,900.01\n"
    b"bad row\n"
)


class LimitPolicy:
    """Policy that flags outflows above a fixed limit."""

    def __init__(self, limit: Decimal):
        self.limit = limit
        self.calls: list[tuple[str, str, int]] = []

    def check_compliance(
        self,
        transaction: PersistedTransaction,
        account_type: str,
        all_user_transactions: list[PersistedTransaction],
        user_id: str,
    ) -> PolicyCheckResult:
        self.calls.append((transaction.id, account_type, len(all_user_transactions)))
        if abs(transaction.amount) > self.limit and transaction.amount < 0:
            return PolicyCheckResult(PolicyStatus.VIOLATION, f"Exceeds {transaction.category} limit")
        return PolicyCheckResult(PolicyStatus.COMPLIANT, "Within limits")


class BrokenPolicy:
    """Policy whose backend is unavailable."""

    def check_compliance(self, *args: object) -> PolicyCheckResult:
        raise ConnectionError("policy backend down")


class LedgerUnavailableStore(InMemoryTransactionStore):
    """Store whose full-ledger reads fail after the window lookups succeed."""

    def find(self, user_id: str, start: Optional[date] = None, *args: Any, **kwargs: Any) -> list[PersistedTransaction]:
        if start is None:
            raise StoreError("ledger read timed out")
        return super().find(user_id, start, *args, **kwargs)


class TestStatementIngestor:
    """Tests for StatementIngestor."""

    @pytest.fixture
    def store(self) -> InMemoryTransactionStore:
        """Create an empty ledger."""
        return InMemoryTransactionStore()

    def test_ingest_csv(self, store: InMemoryTransactionStore) -> None:
        """Test a first upload of a CSV statement."""
        result = StatementIngestor(store).ingest("alice", STATEMENT, "march.csv", "text/csv")

        assert result.success
        assert result.transaction_count == 3
        assert result.duplicates_skipped == 0
        assert result.rows_skipped == 1
        assert result.message == (
            "Statement processed successfully. 3 new transactions added from your file, 0 duplicates skipped."
        )
        assert len(store.find("alice")) == 3

    def test_reupload_adds_nothing(self, store: InMemoryTransactionStore) -> None:
        """Test that uploading the same file twice is a no-op."""
        ingestor = StatementIngestor(store)
        ingestor.ingest("alice", STATEMENT, "march.csv")
        second = ingestor.ingest("alice", STATEMENT, "march-copy.csv")

        assert second.success
        assert second.transaction_count == 0
        assert second.duplicates_skipped == 3
        assert second.message == (
            "Statement processed successfully. 0 new transactions added from your file, 3 duplicates skipped."
        )
        assert len(store.find("alice")) == 3

    def test_unsupported_file_stores_placeholder(self, store: InMemoryTransactionStore) -> None:
        """Test that unknown formats are recorded without failing."""
        result = StatementIngestor(store).ingest("alice", b"\x00\x01", "statement.xlsx")

        assert result.success
        assert result.transaction_count == 1
        placeholder = result.transactions[0]
        assert placeholder.amount == Decimal("0")
        assert placeholder.category == "other"

    def test_unreadable_file_fails(self, store: InMemoryTransactionStore) -> None:
        """Test that a file-level error is reported, not raised."""
        result = StatementIngestor(store).ingest("alice", b"\n\n", "empty.csv")

        assert not result.success
        assert "empty" in result.message
        assert store.find("alice") == []

    def test_policy_pass(self, store: InMemoryTransactionStore) -> None:
        """Test that saved records get the policy verdict."""
        policy = LimitPolicy(Decimal("100"))
        ingestor = StatementIngestor(store, policy_service=policy, account_type="business")

        result = ingestor.ingest("alice", STATEMENT, "march.csv")

        statuses = {t.merchant: t.policy_status for t in result.transactions}
        assert statuses["ELECTRONICS STORE"] is PolicyStatus.VIOLATION
        assert statuses["COFFEE SHOP"] is PolicyStatus.COMPLIANT
        stored = {t.merchant: t for t in store.find("alice")}
        assert stored["ELECTRONICS STORE"].policy_rule == "Exceeds shopping limit"
        assert {call[1] for call in policy.calls} == {"business"}
        assert all(call[2] == 3 for call in policy.calls)

    def test_policy_not_run_for_duplicates(self, store: InMemoryTransactionStore) -> None:
        """Test that only newly saved records are checked."""
        policy = LimitPolicy(Decimal("100"))
        ingestor = StatementIngestor(store, policy_service=policy)
        ingestor.ingest("alice", STATEMENT, "march.csv")
        policy.calls.clear()

        ingestor.ingest("alice", STATEMENT, "march.csv")
        assert policy.calls == []

    def test_policy_failure_keeps_default(self, store: InMemoryTransactionStore) -> None:
        """Test that a failing policy service does not abort ingestion."""
        result = StatementIngestor(store, policy_service=BrokenPolicy()).ingest("alice", STATEMENT, "march.csv")

        assert result.success
        assert result.transaction_count == 3
        assert all(t.policy_status is PolicyStatus.COMPLIANT for t in store.find("alice"))

    def test_ledger_read_failure_skips_policy(self) -> None:
        """Test that saved records are still reported when the policy pass cannot load the ledger."""
        store = LedgerUnavailableStore()
        policy = LimitPolicy(Decimal("100"))

        result = StatementIngestor(store, policy_service=policy).ingest("alice", STATEMENT, "march.csv")

        assert result.success
        assert result.transaction_count == 3
        assert policy.calls == []
        assert all(t.policy_status is PolicyStatus.COMPLIANT for t in result.transactions)

    def test_to_dict(self, store: InMemoryTransactionStore) -> None:
        """Test the serialized ingestion result."""
        data = StatementIngestor(store).ingest("alice", STATEMENT, "march.csv").to_dict()

        assert data["success"] is True
        assert data["transactionCount"] == 3
        assert data["duplicatesSkipped"] == 0
        assert len(data["transactions"]) == 3
        assert "hasAnomaly" not in data["transactions"][0]
