"""Tests for settings loading."""

import pytest

from bizledger.config import Settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        for key in ("DATABASE_URL", "RECONCILIATION_MODE", "PORT", "DEBUG", "LOG_LEVEL"):
            monkeypatch.delenv(key, raising=False)

        settings = Settings.from_env()

        assert settings.database_url.startswith("postgresql+asyncpg://")
        assert settings.reconciliation_mode == "best_effort"
        assert settings.is_transactional is False
        assert settings.PORT == 8000
        assert settings.DEBUG is False
        assert settings.log_level == "INFO"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("RECONCILIATION_MODE", "Transactional")
        monkeypatch.setenv("PORT", "9000")
        monkeypatch.setenv("DEBUG", "true")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = Settings.from_env()

        assert settings.is_transactional is True
        assert settings.port == 9000
        assert settings.debug is True
        assert settings.log_level == "DEBUG"

    def test_unknown_reconciliation_mode(self, monkeypatch):
        monkeypatch.setenv("RECONCILIATION_MODE", "eventually")

        with pytest.raises(ValueError, match="RECONCILIATION_MODE"):
            Settings.from_env()
