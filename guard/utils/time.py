"""Time helpers."""
from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta


def monotonic_ms() -> int:
    """Return the process-local monotonic clock in whole milliseconds."""

    return time.monotonic_ns() // 1_000_000


def ceil_seconds(ms: int) -> int:
    """Round a millisecond span up to whole seconds."""

    return -(-ms // 1000)


def monotonic_to_iso(deadline_ms: int, now_ms: int) -> str:
    """Project a monotonic deadline onto the wall clock as an ISO-8601 string."""

    wall = datetime.now(UTC) + timedelta(milliseconds=deadline_ms - now_ms)
    return wall.isoformat(timespec="milliseconds").replace("+00:00", "Z")
