"""Configuration management for Deal Engine."""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_dir = Path.home() / ".deal-engine"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_dir = get_config_dir() / "data"
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_db_path() -> Path:
    """Get the SQLite database file path."""
    return get_data_dir() / "deals.db"


class ScoringWeights(BaseModel):
    """Deal score weight configuration."""

    margin: Decimal = Decimal("0.35")
    demand: Decimal = Decimal("0.25")
    volume_risk: Decimal = Decimal("0.25")
    reliability: Decimal = Decimal("0.15")

    def total(self) -> Decimal:
        """Calculate total weight (should sum to 1.0)."""
        return self.margin + self.demand + self.volume_risk + self.reliability


class DecisionThresholds(BaseModel):
    """Score and margin thresholds for the deal decision."""

    buy_score: int = 75
    buy_margin: Decimal = Decimal("25")
    renegotiate_score: int = 50
    renegotiate_margin: Decimal = Decimal("15")
    guardrail_margin: Decimal = Decimal("120")  # Margins above this get their drivers listed


class AllocationConfig(BaseModel):
    """Allocation planner configuration."""

    phase1_share: Decimal = Decimal("0.65")
    capacity_months: int = 3  # Max months of absorption per channel
    max_channel_share: Decimal = Decimal("0.30")
    min_margin_percent: Decimal = Decimal("15")


class NegotiationConfig(BaseModel):
    """Negotiation target configuration."""

    target_margin: Decimal = Decimal("0.25")
    walk_away_margin: Decimal = Decimal("0.15")


class FxConfig(BaseModel):
    """FX rate provider configuration."""

    api_url: str = "https://api.freecurrencyapi.com/v1/latest"
    api_key: str = ""
    cache_ttl_minutes: int = 60
    timeout_seconds: int = 10
    mock_mode: bool = False


class ServiceConfig(BaseModel):
    """Evaluation service configuration."""

    fetch_timeout_seconds: float = 15.0
    max_workers: int = 8
    destinations: list[str] = Field(
        default_factory=lambda: ["US", "UK", "DE", "FR", "IT", "AU"]
    )
    retailers: list[str] = Field(default_factory=lambda: ["walmart", "target"])
    distributors: list[str] = Field(
        default_factory=lambda: ["ingram_micro", "alliance_entertainment"]
    )


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=str(get_config_dir() / ".env"),
        env_file_encoding="utf-8",
        env_prefix="DEAL_",
        extra="ignore",
    )

    scoring_weights: ScoringWeights = Field(default_factory=ScoringWeights)
    thresholds: DecisionThresholds = Field(default_factory=DecisionThresholds)
    allocation: AllocationConfig = Field(default_factory=AllocationConfig)
    negotiation: NegotiationConfig = Field(default_factory=NegotiationConfig)
    fx: FxConfig = Field(default_factory=FxConfig)
    service: ServiceConfig = Field(default_factory=ServiceConfig)

    log_level: str = "INFO"
    debug_mode: bool = False

    def save(self) -> None:
        """Save settings to the config file."""
        config_path = get_config_dir() / "settings.json"
        data = self._convert_decimals(self.model_dump(mode="json"))
        with open(config_path, "w") as f:
            json.dump(data, f, indent=2)

    def _convert_decimals(self, obj: Any) -> Any:
        """Recursively convert Decimal to string for JSON serialization."""
        if isinstance(obj, Decimal):
            return str(obj)
        elif isinstance(obj, dict):
            return {k: self._convert_decimals(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [self._convert_decimals(item) for item in obj]
        return obj

    @classmethod
    def load(cls) -> "Settings":
        """Load settings from the config file or create defaults."""
        config_path = get_config_dir() / "settings.json"
        env_path = get_config_dir() / ".env"

        settings = cls()

        if config_path.exists():
            try:
                with open(config_path) as f:
                    data = json.load(f)
                settings = cls.model_validate(data)
            except (OSError, json.JSONDecodeError, ValidationError) as e:
                logger.warning(f"Ignoring unreadable settings file {config_path}: {e}")

        # API credentials from .env take precedence
        if env_path.exists():
            from dotenv import dotenv_values

            env_vars = dotenv_values(env_path)
            if env_vars.get("DEAL_FX_API_KEY"):
                settings.fx.api_key = env_vars["DEAL_FX_API_KEY"]
            if env_vars.get("DEAL_MOCK_MODE"):
                settings.fx.mock_mode = env_vars["DEAL_MOCK_MODE"].lower() in (
                    "true",
                    "1",
                    "yes",
                )

        return settings


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reload_settings() -> Settings:
    """Reload settings from disk."""
    global _settings
    _settings = Settings.load()
    return _settings
