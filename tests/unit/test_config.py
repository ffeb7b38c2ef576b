"""Unit tests for application settings."""

from unittest.mock import patch

import pytest
from pydantic import ValidationError

from safezone.config import Settings

SECRETS = {"jwt_secret": "access", "jwt_refresh_secret": "refresh"}


class TestSettings:
    """Tests for Settings defaults and validation."""

    def test_defaults(self):
        settings = Settings(_env_file=None, **SECRETS)
        assert settings.jwt_algorithm == "HS256"
        assert settings.jwt_expires_minutes == 15
        assert settings.jwt_refresh_expires_days == 7
        assert settings.bcrypt_rounds == 12
        assert settings.max_login_attempts == 5
        assert settings.lockout_minutes == 15
        assert settings.access_token_expires_seconds == 900

    def test_missing_secret_fails(self, monkeypatch):
        monkeypatch.delenv("JWT_SECRET", raising=False)
        with pytest.raises(ValidationError):
            Settings(_env_file=None, jwt_refresh_secret="refresh")

    def test_empty_secret_fails(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, jwt_secret="", jwt_refresh_secret="refresh")

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("MAX_LOGIN_ATTEMPTS", "3")
        monkeypatch.setenv("LOCKOUT_MINUTES", "30")
        settings = Settings(_env_file=None, **SECRETS)
        assert settings.max_login_attempts == 3
        assert settings.lockout_minutes == 30

    @pytest.mark.parametrize("rounds", [3, 32])
    def test_bcrypt_rounds_bounds(self, rounds):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, bcrypt_rounds=rounds, **SECRETS)

    def test_cors_origins_list(self):
        settings = Settings(
            _env_file=None, cors_origins="https://a.example, https://b.example,", **SECRETS
        )
        assert settings.cors_origins_list == ["https://a.example", "https://b.example"]

    def test_cors_wildcard_default(self):
        assert Settings(_env_file=None, **SECRETS).cors_origins_list == ["*"]


class TestRunEntryPoint:
    """Tests for the safezone-api console script."""

    def test_serves_app_on_configured_address(self, monkeypatch):
        from safezone import main

        monkeypatch.setattr(
            main,
            "get_settings",
            lambda: Settings(_env_file=None, api_host="127.0.0.1", api_port=9000, **SECRETS),
        )
        with patch("safezone.main.uvicorn.run") as mock_run:
            main.run()

        mock_run.assert_called_once_with("safezone.main:app", host="127.0.0.1", port=9000)
