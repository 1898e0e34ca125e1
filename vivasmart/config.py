from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping

from dotenv import load_dotenv
from sqlalchemy.engine.url import make_url

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


class Config:
    # ==========================
    #  SECRET / SECURITY
    # ==========================
    SECRET_KEY = os.getenv("SECRET_KEY") or os.getenv("FLASK_SECRET_KEY", "change-me")

    # Admin: email que firma verificaciones y secreto del header X-Admin-Secret.
    # Sin ADMIN_SECRET la API de admin queda cerrada.
    ADMIN_EMAIL = (os.getenv("ADMIN_EMAIL") or "").strip().lower()
    ADMIN_SECRET = os.getenv("ADMIN_SECRET", "")

    # ==========================
    #  DATABASE
    # ==========================
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///vivasmart.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Reintentos ante conflicto de versión (users / coupons / payments)
    WRITE_ATTEMPTS = _env_int("WRITE_ATTEMPTS", 3)

    # ==========================
    #  ENTITLEMENTS
    # ==========================
    FREE_TRIALS = _env_int("FREE_TRIALS", 3)
    MONTHLY_PLAN_DAYS = _env_int("MONTHLY_PLAN_DAYS", 30)

    # ==========================
    #  ANALYZER (LLM)
    # ==========================
    # gemini / openai
    LLM_PROVIDER = (os.getenv("LLM_PROVIDER") or "gemini").strip().lower()

    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    GEMINI_BASE_URL = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")

    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

    ANALYZER_TIMEOUT_SECONDS = float(os.getenv("ANALYZER_TIMEOUT_SECONDS", "60"))

    # Límites del texto extraído del PDF
    MIN_TEXT_CHARS = _env_int("MIN_TEXT_CHARS", 60)
    MAX_TEXT_CHARS = _env_int("MAX_TEXT_CHARS", 15000)

    # ==========================
    #  LOGGING
    # ==========================
    LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").upper()


@dataclass(frozen=True)
class Settings:
    """Immutable view of the configuration the entitlement core depends on."""

    free_trials: int = 3
    monthly_days: int = 30
    admin_email: str = ""
    min_text_chars: int = 60
    max_text_chars: int = 15000

    @classmethod
    def from_mapping(cls, cfg: Mapping[str, Any]) -> "Settings":
        return cls(
            free_trials=max(0, int(cfg.get("FREE_TRIALS", 3))),
            monthly_days=max(1, int(cfg.get("MONTHLY_PLAN_DAYS", 30))),
            admin_email=(cfg.get("ADMIN_EMAIL") or "").strip().lower(),
            min_text_chars=int(cfg.get("MIN_TEXT_CHARS", 60)),
            max_text_chars=int(cfg.get("MAX_TEXT_CHARS", 15000)),
        )


# --- asegurar carpeta del archivo SQLite (evita "unable to open database file")
def ensure_sqlite_dir(uri: str) -> None:
    url = make_url(uri)
    if url.get_backend_name() != "sqlite":
        return
    db_path = url.database
    if db_path and db_path != ":memory:":
        directory = os.path.dirname(db_path)
        if directory and not os.path.exists(directory):
            os.makedirs(directory, exist_ok=True)
