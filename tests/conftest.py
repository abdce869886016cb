from __future__ import annotations

import pytest

from guard.rate_limit import RateLimiter


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: int = 1_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(
        max_requests=10,
        window_ms=60_000,
        ban_threshold=3,
        ban_duration_ms=300_000,
        clock=clock,
    )
