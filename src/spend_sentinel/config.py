"""Configuration loading and validation for spend-sentinel."""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

import yaml

from spend_sentinel.utils.logging_config import get_logger

logger = get_logger(__name__)

# Environment variable overriding the configured database URL
DATABASE_URL_ENV = "SPEND_SENTINEL_DATABASE_URL"

DEFAULT_DATABASE_URL = "sqlite:///spend_sentinel.db"


class ConfigError(Exception):
    """Exception raised for configuration errors."""

    pass


def _decimal(value: object, key: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ConfigError(f"'{key}' must be a number, got {value!r}") from e


def _positive_int(value: object, key: str) -> int:
    try:
        number = int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{key}' must be an integer, got {value!r}") from e
    if number < 1:
        raise ConfigError(f"'{key}' must be at least 1, got {number}")
    return number


@dataclass
class AnomalyConfig:
    """Configuration for the anomaly scan.

    Attributes:
        history_months: Length of the baseline window preceding the analysis window.
        min_category_samples: Samples needed for a per-category baseline.
        min_fallback_samples: Samples needed for the cross-category fallback.
        fallback_multiplier: Fallback flags amounts above this multiple of the average.
        fallback_floor: Fallback never flags amounts at or below this value.
        workers: Thread pool size for scoring (1 scores sequentially).
    """

    history_months: int = 6
    min_category_samples: int = 3
    min_fallback_samples: int = 5
    fallback_multiplier: Decimal = field(default_factory=lambda: Decimal("3"))
    fallback_floor: Decimal = field(default_factory=lambda: Decimal("100"))
    workers: int = 1

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "AnomalyConfig":
        """Create from dictionary."""
        defaults = cls()
        return cls(
            history_months=_positive_int(data.get("history_months", defaults.history_months), "history_months"),
            min_category_samples=_positive_int(
                data.get("min_category_samples", defaults.min_category_samples), "min_category_samples"
            ),
            min_fallback_samples=_positive_int(
                data.get("min_fallback_samples", defaults.min_fallback_samples), "min_fallback_samples"
            ),
            fallback_multiplier=_decimal(
                data.get("fallback_multiplier", defaults.fallback_multiplier), "fallback_multiplier"
            ),
            fallback_floor=_decimal(data.get("fallback_floor", defaults.fallback_floor), "fallback_floor"),
            workers=_positive_int(data.get("workers", defaults.workers), "workers"),
        )


@dataclass
class IngestConfig:
    """Configuration for statement ingestion.

    Attributes:
        max_upload_bytes: Largest accepted statement file.
        max_csv_rows: Largest accepted number of CSV data rows.
        max_pdf_pages: Largest accepted number of PDF pages.
        duplicate_window_hours: Date tolerance for duplicate detection.
    """

    max_upload_bytes: int = 10 * 1024 * 1024
    max_csv_rows: int = 100_000
    max_pdf_pages: int = 200
    duplicate_window_hours: int = 24

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "IngestConfig":
        """Create from dictionary."""
        defaults = cls()
        return cls(
            max_upload_bytes=_positive_int(data.get("max_upload_bytes", defaults.max_upload_bytes), "max_upload_bytes"),
            max_csv_rows=_positive_int(data.get("max_csv_rows", defaults.max_csv_rows), "max_csv_rows"),
            max_pdf_pages=_positive_int(data.get("max_pdf_pages", defaults.max_pdf_pages), "max_pdf_pages"),
            duplicate_window_hours=_positive_int(
                data.get("duplicate_window_hours", defaults.duplicate_window_hours), "duplicate_window_hours"
            ),
        )


@dataclass
class DatabaseConfig:
    """Configuration for the ledger database.

    Attributes:
        url: SQLAlchemy database URL.
        echo: Whether to log emitted SQL.
    """

    url: str = DEFAULT_DATABASE_URL
    echo: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "DatabaseConfig":
        """Create from dictionary."""
        return cls(
            url=str(data.get("url", DEFAULT_DATABASE_URL)),
            echo=bool(data.get("echo", False)),
        )


@dataclass
class LoggingConfig:
    """Configuration for logging.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional path to a log file.
    """

    level: str = "INFO"
    file: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "LoggingConfig":
        """Create from dictionary."""
        log_file = data.get("file")
        return cls(
            level=str(data.get("level", "INFO")),
            file=str(log_file) if log_file else None,
        )


@dataclass
class Config:
    """Main configuration container.

    Attributes:
        anomaly: Anomaly scan configuration.
        ingest: Statement ingestion configuration.
        database: Ledger database configuration.
        logging: Logging configuration.
    """

    anomaly: AnomalyConfig = field(default_factory=AnomalyConfig)
    ingest: IngestConfig = field(default_factory=IngestConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_yaml_file(path: Path) -> dict[str, object]:
    """Load a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content.

    Raises:
        FileNotFoundError: If file doesn't exist.
        ConfigError: If the file is not a YAML mapping.
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        try:
            content = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(content).__name__}")
    return content


def _section(data: dict[str, object], name: str) -> dict[str, object]:
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping, got {type(section).__name__}")
    return section


def load_config(
    settings_path: Optional[Path] = None,
    config_dir: Optional[Path] = None,
) -> Config:
    """Load configuration from settings.yaml and the environment.

    Args:
        settings_path: Path to settings.yaml (or None to use default).
        config_dir: Base config directory (default: ./config).

    Returns:
        Complete Config object.

    Raises:
        ConfigError: If the settings file is invalid.
    """
    if config_dir is None:
        config_dir = Path("config")
    if settings_path is None:
        settings_path = config_dir / "settings.yaml"

    config = Config()

    if settings_path.exists():
        data = load_yaml_file(settings_path)
        config.anomaly = AnomalyConfig.from_dict(_section(data, "anomaly_detection"))
        config.ingest = IngestConfig.from_dict(_section(data, "ingest"))
        config.database = DatabaseConfig.from_dict(_section(data, "database"))
        config.logging = LoggingConfig.from_dict(_section(data, "logging"))
        logger.info(f"Loaded settings from {settings_path}")
    else:
        logger.warning(f"Settings file not found: {settings_path}, using defaults")

    env_url = os.environ.get(DATABASE_URL_ENV)
    if env_url:
        config.database.url = env_url
        logger.debug(f"Database URL taken from {DATABASE_URL_ENV}")

    return config
