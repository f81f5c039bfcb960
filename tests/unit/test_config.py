"""Unit tests for configuration defaults and overrides."""

from __future__ import annotations

import platformdirs
import pytest
from pydantic import ValidationError

from gchat.config import (
    _DEFAULT_DATA_DIR,
    _DEFAULT_DB_PATH,
    RateLimitPolicy,
    Settings,
    StoreSettings,
)


class TestPlatformDefaults:
    """Verify store defaults use platformdirs instead of hardcoded Unix paths."""

    def test_default_data_dir_matches_platformdirs(self) -> None:
        expected = platformdirs.user_data_dir("gchat")
        assert expected == _DEFAULT_DATA_DIR

    def test_default_db_path_under_data_dir(self) -> None:
        assert _DEFAULT_DB_PATH.startswith(_DEFAULT_DATA_DIR)
        assert _DEFAULT_DB_PATH.endswith("gchat.db")

    def test_store_settings_uses_platform_default(self) -> None:
        assert StoreSettings().db_path == _DEFAULT_DB_PATH


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.cache.ttl_days == 30
        assert settings.rate_limit.default.max_requests == 100
        assert settings.rate_limit.default.window_minutes == 60
        assert settings.provider.base_url == "https://api.openai.com/v1"

    def test_env_overrides_nested(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GCHAT__SERVER__PORT", "9090")
        monkeypatch.setenv("GCHAT__PROVIDER__API_KEY", "sk-env")
        settings = Settings()
        assert settings.server.port == 9090
        assert settings.provider.api_key == "sk-env"

    def test_init_args_win(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GCHAT__SERVER__PORT", "9090")
        settings = Settings(server={"port": 7000})
        assert settings.server.port == 7000

    def test_invalid_log_level_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(logging={"level": "VERBOSE"})

    def test_policy_must_allow_a_request(self) -> None:
        with pytest.raises(ValidationError):
            RateLimitPolicy(max_requests=0)
