"""Client identification helpers."""
from __future__ import annotations


def extract_client_key(forwarded_for: str | None, remote_addr: str | None) -> str:
    """Pick the key a request is rate limited under.

    The first hop listed in ``X-Forwarded-For`` wins; otherwise the socket
    address is used.
    """

    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return remote_addr or "unknown"
