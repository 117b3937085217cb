"""
Configuration management for TripSync.

This module handles loading and validating configuration from YAML files
and environment variables using Pydantic for type safety.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
DATA_DIR = PROJECT_ROOT / "data"


class GeneralConfig(BaseModel):
    """General configuration."""
    name: str = "TripSync"
    version: str = "1.0.0"
    debug: bool = False
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    data_dir: str = "data"
    log_to_file: bool = True


class SyncConfig(BaseModel):
    """Offline change queue configuration."""
    db_path: str = "data/pending_changes.db"
    sync_interval: int = Field(default=300, ge=1)  # 5 minutes
    send_immediately: bool = True


class GeoWeatherConfig(BaseModel):
    """Geocoding and weather lookup configuration."""
    weather_ttl: int = Field(default=1800, ge=0)  # 30 minutes
    max_attempts: int = Field(default=3, ge=1)
    backoff_base: float = Field(default=1.0, ge=0.0)
    forecast_horizon_days: int = Field(default=14, ge=0)
    coordinate_precision: int = Field(default=2, ge=0, le=6)
    timeout: int = Field(default=30, ge=1)
    geocoding_url: str = "https://geocoding-api.open-meteo.com/v1/search"
    forecast_url: str = "https://api.open-meteo.com/v1/forecast"


class ConnectivityConfig(BaseModel):
    """Connectivity probe configuration."""
    probe_url: Optional[str] = None
    poll_interval: int = Field(default=15, ge=1)
    timeout: int = Field(default=5, ge=1)


class TripSyncConfig(BaseModel):
    """Main TripSync configuration."""
    general: GeneralConfig = Field(default_factory=GeneralConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    geo_weather: GeoWeatherConfig = Field(default_factory=GeoWeatherConfig)
    connectivity: ConnectivityConfig = Field(default_factory=ConnectivityConfig)


class EnvSettings(BaseSettings):
    """Environment variables settings."""

    # Remote persistence
    supabase_url: Optional[str] = Field(default=None, alias="SUPABASE_URL")
    supabase_key: Optional[str] = Field(default=None, alias="SUPABASE_KEY")

    @field_validator("supabase_url", "supabase_key", mode="before")
    @classmethod
    def drop_placeholders(cls, v):
        """Treat template placeholders like 'your_key_here' as unset."""
        if isinstance(v, str) and (not v.strip() or v.startswith("your_")):
            return None
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def load_yaml_config(config_path: Path | str | None = None) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    if config_path is None:
        config_path = CONFIG_DIR / "settings.yaml"

    config_path = Path(config_path)

    if not config_path.exists():
        return {}

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get_config(config_path: Path | str | None = None) -> TripSyncConfig:
    """Load and return the TripSync configuration."""
    yaml_config = load_yaml_config(config_path)
    return TripSyncConfig(**yaml_config)


def get_env_settings() -> EnvSettings:
    """Get environment settings."""
    return EnvSettings()


def resolve_path(path: str | Path) -> Path:
    """Resolve a configured path relative to the project root."""
    path = Path(path).expanduser()
    if path.is_absolute():
        return path
    return PROJECT_ROOT / path
