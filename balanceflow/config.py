"""Runtime configuration for BalanceFlow.

Values are read from the environment (a local `.env` file is loaded first).
Domain constants that are not meant to be tuned per deployment live in
`balanceflow.models.constants`.
"""

import os
from datetime import timezone, tzinfo
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from balanceflow.models.constants import (
    REMINDER_TICK_SECONDS,
    UNDO_WINDOW_SECONDS,
)

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Application settings."""

    database_url: str = Field("sqlite:///./balanceflow.db", description="SQLAlchemy database URL")
    timezone: str = Field("UTC", description="IANA zone used to compute calendar dates")
    reminder_tick_seconds: float = Field(REMINDER_TICK_SECONDS, gt=0)
    undo_window_seconds: float = Field(UNDO_WINDOW_SECONDS, ge=0)
    snooze_rearms: bool = Field(False, description="Allow a reminder to fire again after its snooze expires")
    follow_ups_enabled: bool = True
    holidays_enabled: bool = True
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    debug: bool = False
    log_level: str = "INFO"

    @property
    def tzinfo(self) -> tzinfo:
        if self.timezone.upper() == "UTC":
            return timezone.utc
        return ZoneInfo(self.timezone)


def load_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./balanceflow.db"),
        timezone=os.getenv("BALANCEFLOW_TIMEZONE", "UTC"),
        reminder_tick_seconds=float(os.getenv("REMINDER_TICK_SECONDS", str(REMINDER_TICK_SECONDS))),
        undo_window_seconds=float(os.getenv("UNDO_WINDOW_SECONDS", str(UNDO_WINDOW_SECONDS))),
        snooze_rearms=_env_bool("SNOOZE_REARMS", False),
        follow_ups_enabled=_env_bool("FOLLOW_UPS_ENABLED", True),
        holidays_enabled=_env_bool("HOLIDAYS_ENABLED", True),
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        debug=_env_bool("DEBUG", False),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings singleton (call `get_settings.cache_clear()` in tests)."""
    return load_settings()
