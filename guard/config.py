"""Application settings and environment loading utilities."""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional


def _load_dotenv() -> None:
    env_path = Path(".env")
    if not env_path.exists():
        return
    for line in env_path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


_load_dotenv()


def _positive_int(value: Optional[str], name: str, default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value)
    except ValueError:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {value!r}") from None
    if parsed <= 0:
        raise RuntimeError(f"Environment variable {name} must be positive, got {parsed}")
    return parsed


@dataclass(frozen=True)
class Settings:
    """Runtime configuration derived from environment variables."""

    window_seconds: int = 60
    max_requests: int = 10
    ban_threshold: int = 3
    ban_duration_seconds: int = 300
    sweep_interval_seconds: int = 120
    log_level: str = "INFO"

    @property
    def window_ms(self) -> int:
        return self.window_seconds * 1000

    @property
    def ban_duration_ms(self) -> int:
        return self.ban_duration_seconds * 1000

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            window_seconds=_positive_int(
                os.getenv("RATE_LIMIT_WINDOW_SECONDS"), "RATE_LIMIT_WINDOW_SECONDS", 60
            ),
            max_requests=_positive_int(
                os.getenv("RATE_LIMIT_MAX_REQUESTS"), "RATE_LIMIT_MAX_REQUESTS", 10
            ),
            ban_threshold=_positive_int(
                os.getenv("RATE_LIMIT_BAN_THRESHOLD"), "RATE_LIMIT_BAN_THRESHOLD", 3
            ),
            ban_duration_seconds=_positive_int(
                os.getenv("RATE_LIMIT_BAN_SECONDS"), "RATE_LIMIT_BAN_SECONDS", 300
            ),
            sweep_interval_seconds=_positive_int(
                os.getenv("RATE_LIMIT_SWEEP_INTERVAL_SECONDS"),
                "RATE_LIMIT_SWEEP_INTERVAL_SECONDS",
                120,
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings.from_env()
