"""Utility helpers."""
from .client import extract_client_key  # noqa: F401
from .time import ceil_seconds, monotonic_ms, monotonic_to_iso  # noqa: F401
