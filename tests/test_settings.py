"""Tests for the settings/configuration module."""

from datetime import date

import pytest
from pydantic import ValidationError

from prop_engine.config.settings import Settings, _get_current_nba_season, get_settings
from prop_engine.utils.season import current_season, season_for_date


class TestSettings:
    """Test the Settings class and configuration loading."""

    def test_settings_loads_defaults(self, monkeypatch):
        """Settings should load with sensible defaults."""
        monkeypatch.delenv("PROP_ENGINE_DATABASE_URL")
        settings = Settings()

        assert settings.database_url == "sqlite:///data/prop_engine.db"
        assert settings.model_version == "weighted-avg-v1"
        assert settings.probability_strategy == "tanh_normal"
        assert settings.prediction_variance is None
        assert settings.min_probability == pytest.approx(0.05)
        assert settings.max_probability == pytest.approx(0.95)
        assert settings.confidence_games == 20
        assert settings.value_bet_threshold == pytest.approx(0.05)
        assert settings.default_min_confidence == pytest.approx(0.5)
        assert settings.log_level == "INFO"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("PROP_ENGINE_MAX_WORKERS", "8")
        monkeypatch.setenv("PROP_ENGINE_PREDICTION_VARIANCE", "25")

        settings = Settings()
        assert settings.max_workers == 8
        assert settings.prediction_variance == pytest.approx(25.0)

    def test_log_level_normalized(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_log_level_validation(self):
        """Invalid log level should raise validation error."""
        with pytest.raises(ValidationError):
            Settings(log_level="INVALID")

    def test_probability_bounds_validation(self):
        with pytest.raises(ValidationError):
            Settings(min_probability=1.5)

        with pytest.raises(ValidationError):
            Settings(min_probability=0.6, max_probability=0.4)

    def test_variance_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(prediction_variance=0)

    def test_worker_count_validation(self):
        with pytest.raises(ValidationError):
            Settings(max_workers=0)

    def test_settings_caching(self):
        """get_settings should return cached instance."""
        get_settings.cache_clear()

        assert get_settings() is get_settings()

    def test_ensure_directories_creates_folders(self, tmp_path):
        settings = Settings(data_dir=tmp_path / "data", logs_dir=tmp_path / "logs", log_to_file=True)

        settings.ensure_directories()

        assert (tmp_path / "data").exists()
        assert (tmp_path / "logs").exists()

    def test_db_path(self):
        settings = Settings(database_url="sqlite:///var/props.db")
        assert str(settings.db_path) == "var/props.db"


class TestSeason:
    """Test NBA season detection."""

    def test_current_season_auto_detection(self):
        from datetime import datetime

        season = _get_current_nba_season()
        assert season in [datetime.now().year, datetime.now().year - 1]

    @pytest.mark.parametrize("day, expected", [
        (date(2024, 10, 22), 2024),
        (date(2024, 12, 31), 2024),
        (date(2025, 1, 15), 2024),
        (date(2025, 6, 20), 2024),
        (date(2025, 9, 30), 2024),
    ])
    def test_season_for_date(self, day, expected):
        assert season_for_date(day) == expected

    def test_current_season_as_of(self):
        assert current_season(as_of=date(2025, 11, 1)) == 2025

    def test_current_season_uses_configured_override(self, monkeypatch):
        monkeypatch.setenv("PROP_ENGINE_CURRENT_SEASON", "2019")
        get_settings.cache_clear()

        assert current_season() == 2019
