"""Configuration system using pydantic-settings with .env and optional YAML override."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and optional YAML config."""

    model_config = SettingsConfigDict(
        env_prefix="DEALBOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Price oracle
    oracle_decimals: int = Field(default=8, ge=0, le=18)
    # "OFFERED/COLLATERAL" -> fixed-point rate
    price_feeds: dict[str, int] = Field(default_factory=dict)

    # Config file path
    config_file: str = ""

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @field_validator("price_feeds")
    @classmethod
    def validate_price_feeds(cls, v: dict[str, int]) -> dict[str, int]:
        for pair, rate in v.items():
            parts = pair.split("/")
            if len(parts) != 2 or not all(p.strip() for p in parts):
                raise ValueError(f"Price feed pair must look like 'A/B', got {pair!r}")
            if rate <= 0:
                raise ValueError(f"Price feed rate for {pair} must be positive")
        return v

    @model_validator(mode="after")
    def apply_yaml_overrides(self) -> "Settings":
        """Apply overrides from YAML config file if specified."""
        config_path = Path(self.config_file) if self.config_file else Path("config.yaml")
        if config_path.exists():
            with open(config_path) as f:
                yaml_config = yaml.safe_load(f)
            if yaml_config and isinstance(yaml_config, dict):
                for key, value in yaml_config.items():
                    if hasattr(self, key):
                        object.__setattr__(self, key, value)
        return self

    def feed_pairs(self) -> dict[tuple[str, str], int]:
        """Price feeds keyed by (kind_a, kind_b)."""
        pairs: dict[tuple[str, str], int] = {}
        for pair, rate in self.price_feeds.items():
            kind_a, kind_b = (p.strip() for p in pair.split("/"))
            pairs[(kind_a, kind_b)] = rate
        return pairs


def load_settings(**overrides: Any) -> Settings:
    """Create a Settings instance with optional overrides."""
    return Settings(**overrides)
