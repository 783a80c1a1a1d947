"""Result models for ingestion, deduplication and anomaly scans."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from spend_sentinel.models.transaction import PersistedTransaction, PolicyStatus


class Severity(Enum):
    """Anomaly severity tier."""

    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"

    @property
    def rank(self) -> int:
        """Sort rank, higher is more severe."""
        return {"minor": 1, "moderate": 2, "major": 3}[self.value]


@dataclass(frozen=True)
class CategoryBaseline:
    """Historical spending statistics for one category of one user.

    Attributes:
        category: Category label, or None for the cross-category baseline.
        mean: Mean outflow magnitude.
        std_dev: Population standard deviation of outflow magnitudes.
        sample_count: Number of historical outflows.
    """

    category: str | None
    mean: Decimal
    std_dev: Decimal
    sample_count: int


@dataclass(frozen=True)
class ExpectedRange:
    """Typical amount band around the baseline mean."""

    min: Decimal
    max: Decimal
    average: Decimal

    def to_dict(self) -> dict[str, Decimal]:
        return {"min": self.min, "max": self.max, "average": self.average}


@dataclass
class AnomalyDetails:
    """Outcome of scoring a single transaction."""

    is_anomaly: bool
    severity: Severity | None = None
    reason: str = ""
    comparison: str = ""
    z_score: Decimal | None = None
    expected_range: ExpectedRange | None = None

    @classmethod
    def not_anomalous(cls) -> "AnomalyDetails":
        return cls(is_anomaly=False)

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"isAnomaly": self.is_anomaly}
        if self.severity is not None:
            data["severity"] = self.severity.value
        if self.reason:
            data["reason"] = self.reason
        if self.comparison:
            data["comparison"] = self.comparison
        if self.z_score is not None:
            data["zScore"] = self.z_score
        if self.expected_range is not None:
            data["expectedRange"] = self.expected_range.to_dict()
        return data


@dataclass
class AnomalyRecord:
    """A flagged transaction together with its scoring details."""

    transaction: PersistedTransaction
    details: AnomalyDetails

    @property
    def severity_rank(self) -> int:
        return self.details.severity.rank if self.details.severity else 0

    def to_dict(self) -> dict[str, object]:
        data = self.transaction.to_dict()
        data["anomalyDetails"] = self.details.to_dict()
        return data


@dataclass
class AnomalySummary:
    """Counts of anomalies per severity."""

    total: int = 0
    major: int = 0
    moderate: int = 0
    minor: int = 0

    @classmethod
    def from_records(cls, records: list[AnomalyRecord]) -> "AnomalySummary":
        summary = cls(total=len(records))
        for record in records:
            if record.details.severity is Severity.MAJOR:
                summary.major += 1
            elif record.details.severity is Severity.MODERATE:
                summary.moderate += 1
            elif record.details.severity is Severity.MINOR:
                summary.minor += 1
        return summary

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "major": self.major,
            "moderate": self.moderate,
            "minor": self.minor,
        }


@dataclass
class AnomalyScanResult:
    """Result of an anomaly scan over one user's ledger.

    Attributes:
        anomalies: Flagged transactions, most severe first.
        summary: Per-severity counts over every anomaly found.
        period: Analysis period label.
        analyzed_count: Number of transactions scored.
        failed_count: Number of transactions whose scoring raised.
    """

    anomalies: list[AnomalyRecord] = field(default_factory=list)
    summary: AnomalySummary = field(default_factory=AnomalySummary)
    period: str = "this-month"
    analyzed_count: int = 0
    failed_count: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "anomalies": [record.to_dict() for record in self.anomalies],
            "summary": self.summary.to_dict(),
            "period": self.period,
        }


@dataclass(frozen=True)
class CategorySpending:
    """Spending aggregate for one category over an analysis window.

    Attributes:
        category: Category label.
        amount: Total outflow magnitude.
        transaction_count: Number of outflows.
        average: Mean outflow magnitude.
        percentage: Share of total spending, one decimal place.
    """

    category: str
    amount: Decimal
    transaction_count: int
    average: Decimal
    percentage: Decimal

    @property
    def display_name(self) -> str:
        return self.category[:1].upper() + self.category[1:] if self.category else "Other"

    def to_dict(self) -> dict[str, object]:
        return {
            "category": self.display_name,
            "amount": self.amount,
            "percentage": self.percentage,
            "transactionCount": self.transaction_count,
            "avgAmount": self.average,
        }


@dataclass
class CategoryAnalysisResult:
    """Per-category spending breakdown, largest category first."""

    categories: list[CategorySpending] = field(default_factory=list)
    total_spending: Decimal = Decimal("0")
    period: str = "this-month"
    start_date: date | None = None
    end_date: date | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "categories": [category.to_dict() for category in self.categories],
            "totalSpending": self.total_spending,
            "period": self.period,
            "dateRange": {
                "start": self.start_date.isoformat() if self.start_date else None,
                "end": self.end_date.isoformat() if self.end_date else None,
            },
        }


@dataclass
class DedupResult:
    """Outcome of filtering candidates against the ledger."""

    saved_count: int = 0
    duplicate_count: int = 0
    failed_count: int = 0
    saved_records: list[PersistedTransaction] = field(default_factory=list)


@dataclass
class IngestResult:
    """Outcome of ingesting one statement file."""

    success: bool
    message: str
    transaction_count: int = 0
    transactions: list[PersistedTransaction] = field(default_factory=list)
    duplicates_skipped: int = 0
    rows_skipped: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "message": self.message,
            "transactionCount": self.transaction_count,
            "transactions": [txn.to_dict() for txn in self.transactions],
            "duplicatesSkipped": self.duplicates_skipped,
        }


@dataclass(frozen=True)
class PolicyCheckResult:
    """Compliance verdict returned by a policy service."""

    status: PolicyStatus
    rule: str | None = None
