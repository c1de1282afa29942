"""Unit tests for core/config.py -- Settings validation and controller wiring.

Covers:
- SECRET_KEY policy: dev auto-generation, production refusal, minimum length
- Expiry and bcrypt cost bounds
- Defaults: 24h sessions, 1h recovery tokens, default role id 2
- AccessController.from_settings() passes every value through
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from auth.controller import AccessController
from core.config import Settings, get_settings

GOOD_KEY = "k" * 32


def test_debug_mode_generates_secret_key():
    s = Settings(debug=True, secret_key="")
    assert len(s.secret_key) >= 32


def test_production_requires_secret_key():
    with pytest.raises(ValidationError):
        Settings(debug=False, secret_key="")


def test_short_secret_key_rejected():
    with pytest.raises(ValidationError):
        Settings(debug=True, secret_key="short")


@pytest.mark.parametrize("rounds", [3, 32])
def test_bcrypt_rounds_bounds(rounds):
    with pytest.raises(ValidationError):
        Settings(secret_key=GOOD_KEY, bcrypt_rounds=rounds)


def test_non_positive_expiry_rejected():
    with pytest.raises(ValidationError):
        Settings(secret_key=GOOD_KEY, session_token_expire_seconds=0)


def test_defaults():
    s = Settings(secret_key=GOOD_KEY)
    assert s.session_token_expire_seconds == 24 * 3600
    assert s.recovery_token_expire_seconds == 3600
    assert s.default_role_id == 2
    assert s.login_rate_limit == "10/minute"


def test_environment_variables_are_read(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", GOOD_KEY)
    monkeypatch.setenv("BCRYPT_ROUNDS", "5")
    get_settings.cache_clear()
    try:
        s = get_settings()
        assert s.secret_key == GOOD_KEY
        assert s.bcrypt_rounds == 5
        assert get_settings() is s
    finally:
        get_settings.cache_clear()


def test_from_settings_wires_values():
    s = Settings(
        secret_key=GOOD_KEY,
        bcrypt_rounds=4,
        session_token_expire_seconds=60,
        recovery_token_expire_seconds=120,
        default_role_id=3,
        database_url="sqlite:///:memory:",
    )
    controller = AccessController.from_settings(s)
    try:
        assert controller.hasher.rounds == 4
        assert controller.tokens.session_ttl == timedelta(seconds=60)
        assert controller.recovery_ttl == timedelta(seconds=120)
        assert controller.default_role_id == 3
        controller.register("a@x.com", "secret1", "Name")
        assert controller.check_permission("a@x.com", "orders.read") is True
    finally:
        controller.store.close()


def test_app_lifespan_not_left_patched():
    # Runs after the API modules; their client fixture must hand the real lifespan back.
    from api.main import app

    assert app.router.lifespan_context.__name__ != "test_lifespan"
