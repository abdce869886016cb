"""Per-client state tracked by the limiter."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass
class ClientRecord:
    """Sliding-window timestamps plus violation and ban bookkeeping.

    Timestamps are monotonic milliseconds. ``banned_until`` only carries
    meaning while ``banned`` is set.
    """

    requests: List[int] = field(default_factory=list)
    violations: int = 0
    banned: bool = False
    banned_until: int = 0

    @property
    def is_idle(self) -> bool:
        return not self.requests and self.violations == 0 and not self.banned


def prune_window(record: ClientRecord, now: int, window_ms: int) -> None:
    """Drop every timestamp at or before ``now - window_ms``."""

    cutoff = now - window_ms
    record.requests = [ts for ts in record.requests if ts > cutoff]
