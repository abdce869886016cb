"""In-memory sliding-window rate limiter with escalating bans."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from guard.config import Settings
from guard.records import ClientRecord, prune_window
from guard.store import ClientStore
from guard.utils.time import ceil_seconds, monotonic_ms

LOGGER = logging.getLogger(__name__)


class ClientNotFoundError(LookupError):
    """Raised when an administrative operation names an unknown client."""

    def __init__(self, client_key: str) -> None:
        super().__init__(f"Client not found: {client_key}")
        self.client_key = client_key


class DecisionStatus(str, enum.Enum):
    ALLOWED = "allowed"
    RATE_LIMITED = "rate_limited"
    BANNED = "banned"


@dataclass(frozen=True)
class Decision:
    """Outcome of a single admission check."""

    allowed: bool
    status: DecisionStatus
    remaining: int
    reset_in_seconds: int
    violations: Optional[int] = None
    ban_started: bool = False


@dataclass(frozen=True)
class ClientSnapshot:
    active_requests_in_window: int
    violations: int
    banned: bool
    banned_until: Optional[int]


class RateLimiter:
    """Tracks requests per client within a sliding window and bans repeat offenders.

    A client may make at most ``max_requests`` requests inside any rolling
    ``window_ms``. Each request that finds the window exhausted counts as a
    violation; reaching ``ban_threshold`` violations bans the client for
    ``ban_duration_ms``. All times are monotonic milliseconds.
    """

    def __init__(
        self,
        max_requests: int,
        window_ms: int,
        ban_threshold: int,
        ban_duration_ms: int,
        *,
        clock: Callable[[], int] = monotonic_ms,
    ) -> None:
        for name, value in (
            ("max_requests", max_requests),
            ("window_ms", window_ms),
            ("ban_threshold", ban_threshold),
            ("ban_duration_ms", ban_duration_ms),
        ):
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        self.max_requests = max_requests
        self.window_ms = window_ms
        self.ban_threshold = ban_threshold
        self.ban_duration_ms = ban_duration_ms
        self._clock = clock
        self._store = ClientStore()

    @classmethod
    def from_settings(
        cls, settings: Settings, *, clock: Callable[[], int] = monotonic_ms
    ) -> "RateLimiter":
        return cls(
            settings.max_requests,
            settings.window_ms,
            settings.ban_threshold,
            settings.ban_duration_ms,
            clock=clock,
        )

    def now(self) -> int:
        return self._clock()

    def evaluate(self, client_key: str, now: Optional[int] = None) -> Decision:
        """Admit or deny one request from ``client_key`` and record it."""

        with self._store.locked() as records:
            if now is None:
                now = self._clock()
            record = records.get(client_key)
            if record is None:
                record = records[client_key] = ClientRecord()

            if record.banned:
                if now < record.banned_until:
                    return Decision(
                        allowed=False,
                        status=DecisionStatus.BANNED,
                        remaining=0,
                        reset_in_seconds=ceil_seconds(record.banned_until - now),
                    )
                record = records[client_key] = ClientRecord()
                LOGGER.info("ban expired", extra={"client_key": client_key})

            prune_window(record, now, self.window_ms)

            if len(record.requests) >= self.max_requests:
                record.violations += 1
                if record.violations >= self.ban_threshold:
                    record.banned = True
                    record.banned_until = now + self.ban_duration_ms
                    LOGGER.warning(
                        "client banned after %d violations",
                        record.violations,
                        extra={"client_key": client_key},
                    )
                    return Decision(
                        allowed=False,
                        status=DecisionStatus.BANNED,
                        remaining=0,
                        reset_in_seconds=ceil_seconds(self.ban_duration_ms),
                        ban_started=True,
                    )
                return Decision(
                    allowed=False,
                    status=DecisionStatus.RATE_LIMITED,
                    remaining=0,
                    reset_in_seconds=self._window_reset_in(record, now),
                    violations=record.violations,
                )

            record.requests.append(now)
            return Decision(
                allowed=True,
                status=DecisionStatus.ALLOWED,
                remaining=self.max_requests - len(record.requests),
                reset_in_seconds=self._window_reset_in(record, now),
            )

    def _window_reset_in(self, record: ClientRecord, now: int) -> int:
        oldest = record.requests[0] if record.requests else now
        return ceil_seconds(oldest + self.window_ms - now)

    def sweep(self, now: Optional[int] = None) -> int:
        """Evict records whose ban has lapsed or that hold no state.

        The lock is taken once per key so concurrent admission checks are
        never stalled for the whole scan.
        """

        evicted = 0
        for key in self._store.keys():
            with self._store.locked() as records:
                record = records.get(key)
                if record is None:
                    continue
                current = self._clock() if now is None else now
                if record.banned and current >= record.banned_until:
                    del records[key]
                    evicted += 1
                    continue
                prune_window(record, current, self.window_ms)
                if record.is_idle:
                    del records[key]
                    evicted += 1
        if evicted:
            LOGGER.info("removed stale client records", extra={"evicted": evicted})
        return evicted

    def unban(self, client_key: str) -> None:
        with self._store.locked() as records:
            if client_key not in records:
                raise ClientNotFoundError(client_key)
            records[client_key] = ClientRecord()
        LOGGER.info("client unbanned", extra={"client_key": client_key})

    def reset(self, client_key: str) -> None:
        with self._store.locked() as records:
            if records.pop(client_key, None) is None:
                raise ClientNotFoundError(client_key)
        LOGGER.info("client record deleted", extra={"client_key": client_key})

    def reset_all(self) -> int:
        with self._store.locked() as records:
            count = len(records)
            records.clear()
        LOGGER.info("all client records cleared (%d)", count)
        return count

    def snapshot(self, now: Optional[int] = None) -> Dict[str, ClientSnapshot]:
        """Report every tracked client without mutating any record."""

        with self._store.locked() as records:
            current = self._clock() if now is None else now
            cutoff = current - self.window_ms
            return {
                key: ClientSnapshot(
                    active_requests_in_window=sum(1 for ts in record.requests if ts > cutoff),
                    violations=record.violations,
                    banned=record.banned,
                    banned_until=record.banned_until if record.banned else None,
                )
                for key, record in records.items()
            }

    def stats(self, now: Optional[int] = None) -> Dict[str, int]:
        with self._store.locked() as records:
            current = self._clock() if now is None else now
            banned = sum(
                1 for record in records.values() if record.banned and current < record.banned_until
            )
            return {"tracked_clients": len(records), "banned_clients": banned}
