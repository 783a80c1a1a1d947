"""Bank statement ingestion and spending anomaly detection."""

__version__ = "0.1.0"
