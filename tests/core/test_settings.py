"""Tests for dimspine.core.settings: env loading, overrides, validation."""

from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path

import pytest

from dimspine.core.errors import ConfigError
from dimspine.core.settings import DimspineSettings, load_settings


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """No stray DIMSPINE_* variables or .env file."""
    for key in list(os.environ):
        if key.startswith("DIMSPINE_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


class TestDefaults:
    def test_defaults(self):
        settings = load_settings()
        assert settings.database_path.name == "dimspine.db"
        assert settings.log_level == "INFO"
        assert settings.max_workers == 4
        assert settings.fact_chunk_size == 5000
        assert settings.reconcile_tolerance == Decimal("0")
        assert settings.include_signup_dates_in_calendar is True


class TestEnvironment:
    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("DIMSPINE_MAX_WORKERS", "2")
        monkeypatch.setenv("DIMSPINE_RECONCILE_TOLERANCE", "0.01")
        settings = DimspineSettings()
        assert settings.max_workers == 2
        assert settings.reconcile_tolerance == Decimal("0.01")

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("DIMSPINE_LOG_LEVEL=debug\n")
        assert load_settings().log_level == "DEBUG"


class TestOverrides:
    def test_override_wins(self, monkeypatch):
        monkeypatch.setenv("DIMSPINE_MAX_WORKERS", "2")
        assert load_settings(max_workers=8).max_workers == 8

    def test_none_override_ignored(self, monkeypatch):
        monkeypatch.setenv("DIMSPINE_MAX_WORKERS", "2")
        assert load_settings(max_workers=None).max_workers == 2

    def test_path_override(self, tmp_path):
        assert load_settings(database_path=tmp_path / "x.db").database_path == Path(tmp_path / "x.db")


class TestValidation:
    def test_zero_workers(self):
        with pytest.raises(ConfigError) as exc_info:
            load_settings(max_workers=0)
        assert exc_info.value.key == "max_workers"

    def test_negative_tolerance(self):
        with pytest.raises(ConfigError):
            load_settings(reconcile_tolerance="-1")

    def test_bad_log_level(self):
        with pytest.raises(ConfigError) as exc_info:
            load_settings(log_level="LOUD")
        assert "log_level" in str(exc_info.value)
