"""
Settings from the environment (and `.env` at the project root).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]
load_dotenv(dotenv_path=ROOT_DIR / ".env")

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./cartflow.db"
DEFAULT_GUEST_BASKET_KEY = "cedar_quote_basket"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _get_env(*keys: str, default: str | None = None) -> str | None:
    for k in keys:
        v = os.getenv(k)
        if v is not None and str(v).strip() != "":
            return v.strip()
    return default


def _get_int(*keys: str, default: int | None = None) -> int | None:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    return int(v)


@dataclass(frozen=True)
class Settings:
    database_url: str
    local_storage_path: str | None  # None: in-memory device storage
    guest_basket_key: str
    gst_percentage: int
    currency: str
    log_level: str
    max_sessions: int = 1000


def load_settings() -> Settings:
    """Read settings now. Every value has a default."""
    return Settings(
        database_url=_get_env("CARTFLOW_DATABASE_URL") or DEFAULT_DATABASE_URL,
        local_storage_path=_get_env("CARTFLOW_LOCAL_STORAGE_PATH"),
        guest_basket_key=_get_env("CARTFLOW_GUEST_BASKET_KEY") or DEFAULT_GUEST_BASKET_KEY,
        gst_percentage=_get_int("CARTFLOW_GST_PERCENTAGE", default=18) or 0,
        currency=_get_env("CARTFLOW_CURRENCY") or "INR",
        log_level=(_get_env("CARTFLOW_LOG_LEVEL") or "INFO").upper(),
        max_sessions=max(_get_int("CARTFLOW_MAX_SESSIONS", default=1000) or 1, 1),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


__all__ = ("ROOT_DIR", "Settings", "load_settings", "configure_logging")
