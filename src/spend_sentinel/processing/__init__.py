"""Transaction processing pipeline components.

The statement ingestor depends on the parsers, which in turn use the
normalizers here, so it is imported from spend_sentinel.processing.ingestion
directly.
"""

from spend_sentinel.processing.anomaly_detector import (
    AnomalyEngine,
    compute_analysis_window,
    compute_baseline,
)
from spend_sentinel.processing.categorizer import (
    CategoryClassifier,
    categorize_transaction,
)
from spend_sentinel.processing.deduplicator import Deduplicator
from spend_sentinel.processing.normalizer import (
    MerchantNameExtractor,
    extract_merchant_name,
)
from spend_sentinel.processing.policy import PolicyService

__all__ = [
    "AnomalyEngine",
    "compute_analysis_window",
    "compute_baseline",
    "CategoryClassifier",
    "categorize_transaction",
    "Deduplicator",
    "MerchantNameExtractor",
    "extract_merchant_name",
    "PolicyService",
]
