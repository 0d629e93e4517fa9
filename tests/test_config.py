"""Tests for configuration."""

import json
from decimal import Decimal

from dealengine.core import config
from dealengine.core.config import Settings


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        """Test default weights and thresholds."""
        s = Settings()

        assert s.scoring_weights.total() == Decimal("1.00")
        assert s.thresholds.buy_score == 75
        assert s.allocation.phase1_share == Decimal("0.65")
        assert s.negotiation.walk_away_margin == Decimal("0.15")
        assert s.service.destinations == ["US", "UK", "DE", "FR", "IT", "AU"]

    def test_env_override(self, monkeypatch):
        """Test DEAL_ environment variables override defaults."""
        monkeypatch.setenv("DEAL_LOG_LEVEL", "DEBUG")

        assert Settings().log_level == "DEBUG"

    def test_save_and_load(self, tmp_path, monkeypatch):
        """Test settings round-trip through the JSON file."""
        monkeypatch.setattr(config, "get_config_dir", lambda: tmp_path)
        s = Settings()
        s.thresholds.buy_score = 80
        s.fx.api_key = "abc"
        s.save()

        saved = json.loads((tmp_path / "settings.json").read_text())
        loaded = Settings.load()

        assert saved["thresholds"]["buy_score"] == 80
        assert loaded.thresholds.buy_score == 80
        assert loaded.fx.api_key == "abc"

    def test_corrupt_file_ignored(self, tmp_path, monkeypatch):
        """Test an unreadable settings file falls back to defaults."""
        monkeypatch.setattr(config, "get_config_dir", lambda: tmp_path)
        (tmp_path / "settings.json").write_text("{not json")

        assert Settings.load().thresholds.buy_score == 75

    def test_env_file_credentials(self, tmp_path, monkeypatch):
        """Test credentials from the .env file take precedence."""
        monkeypatch.setattr(config, "get_config_dir", lambda: tmp_path)
        (tmp_path / ".env").write_text("DEAL_FX_API_KEY=from-env\nDEAL_MOCK_MODE=true\n")

        loaded = Settings.load()

        assert loaded.fx.api_key == "from-env"
        assert loaded.fx.mock_mode is True
