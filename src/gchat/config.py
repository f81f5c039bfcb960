"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (GCHAT__PROVIDER__API_KEY=sk-...)
  2. gchat.yaml             (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; all fields have defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("gchat")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "gchat.db")


def _find_config_file() -> str | None:
    """Return the path of the first gchat.yaml found, or None."""
    candidates = [
        Path("gchat.yaml"),
        Path(platformdirs.user_config_dir("gchat")) / "gchat.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080


class StoreSettings(BaseModel):
    db_path: str = _DEFAULT_DB_PATH


class CacheSettings(BaseModel):
    ttl_days: int = 30
    cleanup_interval_hours: int = 24


class RateLimitPolicy(BaseModel):
    """Maximum request count per rolling window for one feature."""

    max_requests: int = Field(default=100, ge=1)
    window_minutes: int = Field(default=60, ge=1)


def _default_feature_policies() -> dict[str, RateLimitPolicy]:
    return {
        "translation": RateLimitPolicy(max_requests=100, window_minutes=60),
        "language_detection": RateLimitPolicy(max_requests=200, window_minutes=60),
        "smart_reply": RateLimitPolicy(max_requests=50, window_minutes=60),
        "cultural_context": RateLimitPolicy(max_requests=100, window_minutes=60),
        "formality_adjustment": RateLimitPolicy(max_requests=100, window_minutes=60),
        "data_extraction": RateLimitPolicy(max_requests=50, window_minutes=60),
        "batch_data_extraction": RateLimitPolicy(max_requests=10, window_minutes=60),
    }


class RateLimitSettings(BaseModel):
    default: RateLimitPolicy = RateLimitPolicy()
    features: dict[str, RateLimitPolicy] = Field(default_factory=_default_feature_policies)

    def policy_for(self, feature: str) -> RateLimitPolicy:
        return self.features.get(feature, self.default)


class ProviderSettings(BaseModel):
    api_key: str = ""
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4-turbo-preview"
    timeout_seconds: float = 60.0


class MessagingSettings(BaseModel):
    project_id: str = ""
    # OAuth2 bearer token for the FCM HTTP v1 API, minted by the hosting platform
    access_token: str = ""
    base_url: str = "https://fcm.googleapis.com/v1"
    timeout_seconds: float = 10.0


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: GCHAT__SERVER__PORT=9090
        env_prefix="GCHAT__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    store: StoreSettings = StoreSettings()
    cache: CacheSettings = CacheSettings()
    rate_limit: RateLimitSettings = RateLimitSettings()
    provider: ProviderSettings = ProviderSettings()
    messaging: MessagingSettings = MessagingSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
