from __future__ import annotations

import pytest

from coursehub.core.config import AppEnv, Settings, load_settings

_ENV_VARS = (
    "APP_ENV",
    "LOG_LEVEL",
    "LOG_JSON",
    "PORT",
    "DATABASE_URL",
    "REDIS_URL",
    "DASHBOARD_CACHE_TTL",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# ---- defaults and parsing ----


def test_load_settings_defaults(clean_env: pytest.MonkeyPatch) -> None:
    settings = load_settings()
    assert settings.app_env == "dev"
    assert settings.log_level == "info"
    assert settings.log_json is False
    assert settings.port == 8000
    assert settings.database_url is None
    assert settings.redis_url is None
    assert settings.dashboard_cache_ttl == 300


def test_load_settings_normalizes_case_and_whitespace(
    clean_env: pytest.MonkeyPatch,
) -> None:
    clean_env.setenv("APP_ENV", "  PROD ")
    clean_env.setenv("LOG_LEVEL", "DEBUG")
    settings = load_settings()
    assert settings.app_env == "prod"
    assert settings.log_level == "debug"


@pytest.mark.parametrize("raw", ["1", "true", "YES", "on"])
def test_log_json_truthy_values(clean_env: pytest.MonkeyPatch, raw: str) -> None:
    clean_env.setenv("LOG_JSON", raw)
    assert load_settings().log_json is True


def test_log_json_other_values_are_false(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("LOG_JSON", "nope")
    assert load_settings().log_json is False


def test_blank_urls_mean_not_configured(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("DATABASE_URL", "   ")
    clean_env.setenv("REDIS_URL", "")
    settings = load_settings()
    assert settings.database_url is None
    assert settings.redis_url is None


def test_urls_are_passed_through(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("DATABASE_URL", "postgresql+asyncpg://u:p@db/coursehub")
    clean_env.setenv("REDIS_URL", "redis://cache:6379/0")
    settings = load_settings()
    assert settings.database_url == "postgresql+asyncpg://u:p@db/coursehub"
    assert settings.redis_url == "redis://cache:6379/0"


def test_dashboard_cache_ttl_zero_disables_caching(
    clean_env: pytest.MonkeyPatch,
) -> None:
    clean_env.setenv("DASHBOARD_CACHE_TTL", "0")
    assert load_settings().dashboard_cache_ttl == 0


# ---- rejected values ----


@pytest.mark.parametrize(
    "name,value,message",
    [
        ("APP_ENV", "staging", "APP_ENV must be dev|test|prod"),
        ("APP_ENV", "", "APP_ENV must be dev|test|prod"),
        ("LOG_LEVEL", "verbose", "LOG_LEVEL must be debug|info|warning|error"),
        ("PORT", "eighty", "PORT must be an integer"),
        ("DASHBOARD_CACHE_TTL", "soon", "DASHBOARD_CACHE_TTL must be an integer"),
        ("DASHBOARD_CACHE_TTL", "-5", "DASHBOARD_CACHE_TTL must be >= 0"),
    ],
)
def test_load_settings_rejects_invalid_values(
    clean_env: pytest.MonkeyPatch, name: str, value: str, message: str
) -> None:
    clean_env.setenv(name, value)
    with pytest.raises(ValueError, match=message):
        load_settings()


# ---- Settings properties ----


def _make_settings(app_env: AppEnv = "dev") -> Settings:
    return Settings(  # type: ignore[arg-type]
        app_env=app_env,
        log_level="info",
        log_json=False,
        port=8000,
        database_url=None,
        redis_url=None,
    )


@pytest.mark.parametrize("app_env", ["dev", "test", "prod"])
def test_exactly_one_env_flag_is_set(app_env: AppEnv) -> None:
    s = _make_settings(app_env)
    flags = {"dev": s.is_dev, "test": s.is_test, "prod": s.is_prod}
    assert flags == {env: env == app_env for env in flags}


def test_settings_is_frozen() -> None:
    s = _make_settings()
    with pytest.raises(AttributeError):
        s.dashboard_cache_ttl = 0  # type: ignore[misc]
