"""Unit tests for core/config.py -- startup validation of gateway settings."""

import pytest
from pydantic import ValidationError

from core.config import Settings, get_settings
from conftest import TEST_JWT_KEY, make_settings

_REQUIRED_ENV = ("JWT_KEY", "PORT", "COOKIE_NAME", "USERNAME", "PASSWORD", "EXPIRE_IN", "DEBUG")


@pytest.fixture
def clean_env(monkeypatch):
    """Strip every gateway variable from the environment for the test."""
    for name in _REQUIRED_ENV:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


def test_defaults_are_applied():
    settings = make_settings()
    assert settings.session_mode == "shared_secret"
    assert settings.secure_cookies is True
    assert settings.cache_ttl_seconds == 300
    assert settings.token_lifetime_seconds == 7 * 86400


def test_reads_environment(clean_env):
    clean_env.setenv("JWT_KEY", TEST_JWT_KEY)
    clean_env.setenv("PORT", "9091")
    clean_env.setenv("COOKIE_NAME", "auth")
    clean_env.setenv("USERNAME", "admin")
    clean_env.setenv("PASSWORD", "hunter2")
    clean_env.setenv("EXPIRE_IN", "30")
    clean_env.setenv("SESSION_MODE", "credential_hash")
    settings = get_settings()
    assert settings.port == 9091
    assert settings.cookie_name == "auth"
    assert settings.expire_in == 30
    assert settings.session_mode == "credential_hash"
    assert get_settings() is settings


@pytest.mark.parametrize("missing", ["port", "cookie_name", "username", "password", "expire_in"])
def test_missing_required_value_refuses_to_start(clean_env, missing):
    values = {
        "jwt_key": TEST_JWT_KEY,
        "port": 8080,
        "cookie_name": "auth",
        "username": "admin",
        "password": "hunter2",
        "expire_in": 1,
    }
    del values[missing]
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **values)


def test_missing_jwt_key_refuses_to_start(clean_env):
    with pytest.raises(ValidationError, match="JWT_KEY is required"):
        make_settings(jwt_key="")


def test_debug_generates_jwt_key(clean_env):
    settings = make_settings(jwt_key="", debug=True)
    assert len(settings.jwt_key) == 64


def test_short_jwt_key_rejected():
    with pytest.raises(ValidationError, match="at least 32"):
        make_settings(jwt_key="short")


@pytest.mark.parametrize("field,value", [("expire_in", 0), ("port", 0), ("cookie_name", ""), ("password", "")])
def test_out_of_range_values_rejected(field, value):
    with pytest.raises(ValidationError):
        make_settings(**{field: value})


def test_unknown_session_mode_rejected():
    with pytest.raises(ValidationError):
        make_settings(session_mode="magic")


def test_cache_ttl_longer_than_token_lifetime_rejected():
    with pytest.raises(ValidationError, match="CACHE_TTL_SECONDS"):
        make_settings(expire_in=1, cache_ttl_seconds=86400 + 1)


def test_settings_are_immutable():
    settings = make_settings()
    with pytest.raises(ValidationError):
        settings.password = "changed"
