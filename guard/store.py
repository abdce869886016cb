"""Lock-guarded mapping of client keys to their records."""
from __future__ import annotations

from contextlib import contextmanager
from threading import RLock
from typing import Dict, Iterator, List

from guard.records import ClientRecord


class ClientStore:
    """Thread-safe container for per-client rate limiting state.

    Every read-modify-write on a record must happen inside ``locked()`` so it
    is atomic with respect to other operations on the same key.
    """

    def __init__(self) -> None:
        self._records: Dict[str, ClientRecord] = {}
        self._lock = RLock()

    @contextmanager
    def locked(self) -> Iterator[Dict[str, ClientRecord]]:
        with self._lock:
            yield self._records

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
