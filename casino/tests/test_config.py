"""
Tests for environment settings.
"""

import logging

from ..config import Settings, configure_logging


class TestSettings:
    """Tests for Settings.from_env."""

    def test_defaults(self, monkeypatch):
        for name in ("CASINO_ENV", "CASINO_LOG_LEVEL", "ALLOWED_ORIGINS", "CASINO_PORT"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.env == "development"
        assert settings.log_level == "INFO"
        assert settings.allowed_origins == ["*"]
        assert settings.port == 3001
        assert not settings.is_production

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("CASINO_ENV", "production")
        monkeypatch.setenv("CASINO_LOG_LEVEL", "debug")
        monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example, https://b.example,")
        monkeypatch.setenv("CASINO_SESSION_MAX_AGE", "60")

        settings = Settings.from_env()

        assert settings.is_production
        assert settings.log_level == "DEBUG"
        assert settings.allowed_origins == ["https://a.example", "https://b.example"]
        assert settings.session_max_age == 60

    def test_unknown_level_falls_back(self, monkeypatch):
        calls = {}
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.update(kwargs))

        configure_logging("chatty")

        assert calls["level"] == logging.INFO
