"""Transaction data models for statement ingestion and anomaly analysis."""

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from spend_sentinel.utils.decimal_utils import round_half_up


class AnomalyState(Enum):
    """Anomaly analysis state of a persisted transaction.

    Serialized as the tri-state ``hasAnomaly`` field consumed by the
    analytics and coaching services:

    - UNANALYZED: key absent (never analyzed)
    - FLAGGED: ``true``
    - DISMISSED_BY_USER: ``false`` (terminal for automated scans)
    - ANALYZED_CLEAN: ``null`` (analyzed, not anomalous)
    """

    UNANALYZED = "unanalyzed"
    FLAGGED = "flagged"
    DISMISSED_BY_USER = "dismissed"
    ANALYZED_CLEAN = "clean"


class PolicyStatus(Enum):
    """Policy compliance status, set by the policy pass only."""

    COMPLIANT = "compliant"
    WARNING = "warning"
    VIOLATION = "violation"


@dataclass
class RawTransaction:
    """Transaction candidate extracted from a statement.

    Amounts are signed: positive is money in, negative is money out.
    """

    date: date
    merchant: str
    description: str
    amount: Decimal
    category: str = "other"
    source_file: str = ""
    is_placeholder: bool = False
    raw_data: dict | None = None


@dataclass
class PersistedTransaction:
    """Transaction stored in the ledger.

    Attributes:
        user_id: Owner of the transaction.
        date: Transaction date.
        merchant: Merchant name extracted from the description.
        description: Full statement description.
        amount: Signed amount (negative for outflows).
        category: Category label.
        id: Unique identifier (UUID).
        is_deleted: Soft-delete flag.
        anomaly_state: Result of the last anomaly analysis.
        anomaly_reason: Reason text when flagged.
        anomaly_comparison: Comparison text when flagged.
        policy_status: Compliance status from the policy pass.
        policy_rule: Rule that produced the policy status.
        source: Where the record came from.
    """

    user_id: str
    date: date
    merchant: str
    description: str
    amount: Decimal
    category: str = "other"
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    is_deleted: bool = False
    anomaly_state: AnomalyState = AnomalyState.UNANALYZED
    anomaly_reason: str | None = None
    anomaly_comparison: str | None = None
    policy_status: PolicyStatus = PolicyStatus.COMPLIANT
    policy_rule: str | None = None
    source: str = "statement_upload"

    @classmethod
    def from_raw(cls, raw: RawTransaction, user_id: str) -> "PersistedTransaction":
        """Build an unsaved ledger record from a parsed candidate.

        Args:
            raw: Parsed transaction.
            user_id: Owner of the record.

        Returns:
            New PersistedTransaction with a fresh id.
        """
        return cls(
            user_id=user_id,
            date=raw.date,
            merchant=raw.merchant,
            description=raw.description,
            amount=round_half_up(raw.amount),
            category=raw.category,
        )

    @property
    def is_outflow(self) -> bool:
        """Whether this transaction is money out."""
        return self.amount < 0

    @property
    def has_anomaly(self) -> bool | None:
        """Tri-state view of the anomaly state.

        Returns True when flagged, False when dismissed by the user and None
        otherwise. Use anomaly_state to tell "clean" from "never analyzed".
        """
        if self.anomaly_state is AnomalyState.FLAGGED:
            return True
        if self.anomaly_state is AnomalyState.DISMISSED_BY_USER:
            return False
        return None

    def apply_anomaly(
        self,
        state: AnomalyState,
        reason: str | None = None,
        comparison: str | None = None,
        force: bool = False,
    ) -> bool:
        """Move to a new anomaly state.

        Automated writes never replace a user dismissal; pass ``force`` for
        an explicit user action. Every state other than FLAGGED clears the
        reason and comparison.

        Returns:
            True if the state was applied.
        """
        if not force and self.anomaly_state is AnomalyState.DISMISSED_BY_USER:
            return False
        self.anomaly_state = state
        if state is AnomalyState.FLAGGED:
            self.anomaly_reason = reason
            self.anomaly_comparison = comparison
        else:
            self.anomaly_reason = None
            self.anomaly_comparison = None
        return True

    def to_dict(self) -> dict[str, object]:
        """Serialize with the field names used by downstream services.

        ``hasAnomaly`` is omitted entirely for never-analyzed records.
        """
        data: dict[str, object] = {
            "id": self.id,
            "userId": self.user_id,
            "date": self.date.isoformat(),
            "merchant": self.merchant,
            "description": self.description,
            "amount": self.amount,
            "category": self.category,
            "isDeleted": self.is_deleted,
            "anomalyReason": self.anomaly_reason,
            "anomalyComparison": self.anomaly_comparison,
            "policyStatus": self.policy_status.value,
            "policyRule": self.policy_rule,
            "source": self.source,
        }
        if self.anomaly_state is not AnomalyState.UNANALYZED:
            data["hasAnomaly"] = self.has_anomaly
        return data

    def __repr__(self) -> str:
        return (
            f"PersistedTransaction(date={self.date}, "
            f"merchant={self.merchant[:30]!r}, "
            f"amount={self.amount}, "
            f"state={self.anomaly_state.value})"
        )
