import pytest

from core import config as config_module
from core.security import create_access_token, decode_access_token, hash_password, verify_password


def _reset_settings_cache():
    config_module.get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _fresh_settings():
    _reset_settings_cache()
    yield
    _reset_settings_cache()


def test_non_local_debug_mode_is_blocked(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("DEBUG", "true")
    monkeypatch.setenv("JWT_SECRET", "a-real-secret-that-is-long-enough-for-hs256")
    monkeypatch.setenv("CRON_SECRET", "cron-key")

    with pytest.raises(ValueError, match="debug=true"):
        config_module.get_settings()


def test_non_local_default_secrets_are_blocked(monkeypatch):
    monkeypatch.setenv("APP_ENV", "staging")
    monkeypatch.setenv("DEBUG", "false")
    monkeypatch.setenv("JWT_SECRET", config_module.DEFAULT_JWT_SECRET)
    monkeypatch.setenv("CRON_SECRET", "cron-key")

    with pytest.raises(ValueError, match="default JWT secret"):
        config_module.get_settings()


def test_non_local_requires_cron_secret(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("DEBUG", "false")
    monkeypatch.setenv("JWT_SECRET", "a-real-secret-that-is-long-enough-for-hs256")
    monkeypatch.setenv("CRON_SECRET", "")

    with pytest.raises(ValueError, match="CRON_SECRET"):
        config_module.get_settings()


def test_local_allows_dev_defaults(monkeypatch):
    monkeypatch.setenv("APP_ENV", "local")
    monkeypatch.setenv("DEBUG", "false")
    monkeypatch.setenv("JWT_SECRET", config_module.DEFAULT_JWT_SECRET)
    monkeypatch.setenv("CRON_SECRET", "")

    settings = config_module.get_settings()
    assert settings.app_env == "local"
    assert settings.is_local


def test_password_hash_round_trip():
    hashed = hash_password("hunter22")
    assert hashed != "hunter22"
    assert verify_password("hunter22", hashed)
    assert not verify_password("hunter23", hashed)


def test_tampered_token_is_rejected():
    token = create_access_token({"sub": "abc"})
    assert decode_access_token(token)["sub"] == "abc"
    assert decode_access_token(token[:-2] + "xx") is None


def test_permission_matrix():
    from core.permissions import SUPER_ADMIN, WAREHOUSE_MANAGER, has_permission

    assert has_permission(SUPER_ADMIN, "users:invite")
    assert has_permission(WAREHOUSE_MANAGER, "stock:transfer")
    assert not has_permission(WAREHOUSE_MANAGER, "warehouses:manage")
    assert not has_permission(None, "stock:view")
