"""Tests for configuration loading."""

from decimal import Decimal
from pathlib import Path

import pytest

from spend_sentinel.config import DATABASE_URL_ENV, DEFAULT_DATABASE_URL, ConfigError, load_config


class TestLoadConfig:
    """Tests for load_config."""

    @pytest.fixture(autouse=True)
    def clear_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Make sure the database override is not inherited from the shell."""
        monkeypatch.delenv(DATABASE_URL_ENV, raising=False)

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        """Test defaults when there is no settings file."""
        config = load_config(config_dir=tmp_path)

        assert config.anomaly.history_months == 6
        assert config.anomaly.min_category_samples == 3
        assert config.anomaly.fallback_floor == Decimal("100")
        assert config.ingest.duplicate_window_hours == 24
        assert config.database.url == DEFAULT_DATABASE_URL

    def test_reads_sections(self, tmp_path: Path) -> None:
        """Test that each section is loaded."""
        (tmp_path / "settings.yaml").write_text(
            "anomaly_detection:\n"
            "  history_months: 3\n"
            "  workers: 4\n"
            "  fallback_multiplier: 2.5\n"
            "ingest:\n"
            "  max_csv_rows: 500\n"
            "database:\n"
            "  url: sqlite:///custom.db\n"
            "  echo: true\n"
            "logging:\n"
            "  level: DEBUG\n"
            "  file: sentinel.log\n"
        )

        config = load_config(config_dir=tmp_path)

        assert config.anomaly.history_months == 3
        assert config.anomaly.workers == 4
        assert config.anomaly.fallback_multiplier == Decimal("2.5")
        assert config.anomaly.min_fallback_samples == 5
        assert config.ingest.max_csv_rows == 500
        assert config.database.url == "sqlite:///custom.db"
        assert config.database.echo is True
        assert config.logging.level == "DEBUG"
        assert config.logging.file == "sentinel.log"

    def test_explicit_settings_path(self, tmp_path: Path) -> None:
        """Test loading a settings file outside the config directory."""
        settings = tmp_path / "other.yaml"
        settings.write_text("anomaly_detection:\n  history_months: 12\n")

        config = load_config(settings_path=settings, config_dir=tmp_path / "missing")
        assert config.anomaly.history_months == 12

    def test_environment_overrides_database(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the database URL environment override."""
        (tmp_path / "settings.yaml").write_text("database:\n  url: sqlite:///file.db\n")
        monkeypatch.setenv(DATABASE_URL_ENV, "postgresql://ledger")

        assert load_config(config_dir=tmp_path).database.url == "postgresql://ledger"

    @pytest.mark.parametrize(
        "content, message",
        [
            ("anomaly_detection:\n  workers: 0\n", "workers"),
            ("anomaly_detection:\n  history_months: six\n", "history_months"),
            ("anomaly_detection:\n  fallback_floor: lots\n", "fallback_floor"),
            ("ingest: [1, 2]\n", "ingest"),
            ("- just\n- a list\n", "mapping"),
            ("anomaly_detection: {\n", "Invalid YAML"),
        ],
    )
    def test_invalid_settings(self, tmp_path: Path, content: str, message: str) -> None:
        """Test that invalid settings raise ConfigError."""
        (tmp_path / "settings.yaml").write_text(content)

        with pytest.raises(ConfigError, match=message):
            load_config(config_dir=tmp_path)

    def test_empty_file(self, tmp_path: Path) -> None:
        """Test that an empty settings file means defaults."""
        (tmp_path / "settings.yaml").write_text("")
        assert load_config(config_dir=tmp_path).anomaly.workers == 1
