"""Runtime configuration read from environment variables."""

import os
from dataclasses import dataclass
from typing import Optional


DEFAULT_API_URL = "https://ventaveloz-backend.onrender.com/api"
# Android emulator: http://10.0.2.2:4000/api, local: http://localhost:4000/api


@dataclass(frozen=True)
class Settings:
    api_url: str
    timeout: float
    token: Optional[str]
    timezone: str
    verify_table_state: bool
    log_level: str


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


def get_settings() -> Settings:
    """Read settings from the environment (re-read on every call)."""
    return Settings(
        api_url=os.getenv("VENTAVELOZ_API_URL", DEFAULT_API_URL).rstrip("/"),
        timeout=float(os.getenv("VENTAVELOZ_TIMEOUT", "15")),
        token=os.getenv("VENTAVELOZ_TOKEN") or None,
        timezone=os.getenv("VENTAVELOZ_TZ", "America/Mexico_City"),
        verify_table_state=_flag("VENTAVELOZ_VERIFY_TABLE_STATE"),
        log_level=os.getenv("VENTAVELOZ_LOG_LEVEL", "INFO").upper(),
    )
