"""Application package exports commonly used helpers for convenience."""

from .config import Settings, get_settings
from .logging_config import configure_logging
from .rate_limit import ClientNotFoundError, Decision, DecisionStatus, RateLimiter
from .sweeper import BanSweeper

__all__ = [
    "BanSweeper",
    "ClientNotFoundError",
    "Decision",
    "DecisionStatus",
    "RateLimiter",
    "Settings",
    "configure_logging",
    "get_settings",
]
