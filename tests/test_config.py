"""Tests for environment-driven settings."""

import pytest

from cartflow.config import load_settings

KEYS = (
    "CARTFLOW_DATABASE_URL",
    "CARTFLOW_LOCAL_STORAGE_PATH",
    "CARTFLOW_GUEST_BASKET_KEY",
    "CARTFLOW_GST_PERCENTAGE",
    "CARTFLOW_CURRENCY",
    "CARTFLOW_LOG_LEVEL",
    "CARTFLOW_MAX_SESSIONS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """No CARTFLOW_* variables leak in from the host."""
    for key in KEYS:
        monkeypatch.delenv(key, raising=False)


class TestLoadSettings:
    def test_defaults(self):
        s = load_settings()

        assert s.database_url == "sqlite+aiosqlite:///./cartflow.db"
        assert s.local_storage_path is None
        assert s.guest_basket_key == "cedar_quote_basket"
        assert s.gst_percentage == 18
        assert s.currency == "INR"
        assert s.log_level == "INFO"
        assert s.max_sessions == 1000

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("CARTFLOW_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
        monkeypatch.setenv("CARTFLOW_GST_PERCENTAGE", "5")
        monkeypatch.setenv("CARTFLOW_LOG_LEVEL", "debug")

        s = load_settings()

        assert s.database_url == "sqlite+aiosqlite:///:memory:"
        assert s.gst_percentage == 5
        assert s.log_level == "DEBUG"

    def test_blank_value_falls_back(self, monkeypatch):
        monkeypatch.setenv("CARTFLOW_CURRENCY", "   ")

        assert load_settings().currency == "INR"

    def test_bad_integer_raises(self, monkeypatch):
        monkeypatch.setenv("CARTFLOW_GST_PERCENTAGE", "eighteen")

        with pytest.raises(ValueError):
            load_settings()

    @pytest.mark.parametrize(("raw", "expected"), [("25", 25), ("0", 1), ("-4", 1)])
    def test_session_limit_is_at_least_one(self, monkeypatch, raw, expected):
        monkeypatch.setenv("CARTFLOW_MAX_SESSIONS", raw)

        assert load_settings().max_sessions == expected
