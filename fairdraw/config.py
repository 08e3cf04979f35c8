from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Project root directory (repo root)
ROOT_DIR = Path(__file__).resolve().parents[1]

DEFAULT_DB_URL = "sqlite:///./dev.db"
DEFAULT_ENTROPY_TIMEOUT = 5.0
DEFAULT_COMMITMENT_TTL_HOURS = 24.0


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable '{name}' must be a number") from exc


@dataclass(frozen=True)
class Settings:
    """Runtime configuration resolved from the environment (and ``.env``)."""

    db_url: str = DEFAULT_DB_URL
    entropy_url: Optional[str] = None
    """Endpoint returning a recent public block hash; ``None`` disables external entropy."""

    entropy_timeout: float = DEFAULT_ENTROPY_TIMEOUT
    commitment_ttl_hours: float = DEFAULT_COMMITMENT_TTL_HOURS
    """How long after its scheduled draw time a pending commitment stays live."""

    admin_token: Optional[str] = None
    log_level: str = "INFO"

    @property
    def commitment_ttl(self) -> timedelta:
        return timedelta(hours=self.commitment_ttl_hours)

    @staticmethod
    def from_env() -> "Settings":
        load_dotenv()

        entropy_url = os.getenv("FAIRDRAW_ENTROPY_URL", "").strip() or None
        admin_token = os.getenv("FAIRDRAW_ADMIN_TOKEN", "").strip() or None
        return Settings(
            db_url=os.getenv("DB_URL", DEFAULT_DB_URL),
            entropy_url=entropy_url,
            entropy_timeout=_float_env(
                "FAIRDRAW_ENTROPY_TIMEOUT", DEFAULT_ENTROPY_TIMEOUT
            ),
            commitment_ttl_hours=_float_env(
                "FAIRDRAW_COMMITMENT_TTL_HOURS", DEFAULT_COMMITMENT_TTL_HOURS
            ),
            admin_token=admin_token,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


def get_settings() -> Settings:
    return Settings.from_env()
