"""Data models for statement transactions and analysis results."""

from spend_sentinel.models.report import (
    AnomalyDetails,
    AnomalyRecord,
    AnomalyScanResult,
    AnomalySummary,
    CategoryAnalysisResult,
    CategoryBaseline,
    CategorySpending,
    DedupResult,
    ExpectedRange,
    IngestResult,
    PolicyCheckResult,
    Severity,
)
from spend_sentinel.models.transaction import (
    AnomalyState,
    PersistedTransaction,
    PolicyStatus,
    RawTransaction,
)

__all__ = [
    "RawTransaction",
    "PersistedTransaction",
    "AnomalyState",
    "PolicyStatus",
    "Severity",
    "CategoryBaseline",
    "ExpectedRange",
    "AnomalyDetails",
    "AnomalyRecord",
    "AnomalySummary",
    "AnomalyScanResult",
    "CategoryAnalysisResult",
    "CategorySpending",
    "DedupResult",
    "IngestResult",
    "PolicyCheckResult",
]
