import json
import logging
from datetime import datetime

import pytest

from guard.config import Settings
from guard.logging_config import JsonFormatter
from guard.records import ClientRecord, prune_window
from guard.utils import ceil_seconds, extract_client_key, monotonic_to_iso


def test_extract_client_key_prefers_first_forwarded_hop():
    assert extract_client_key("203.0.113.7, 10.0.0.2", "127.0.0.1") == "203.0.113.7"
    assert extract_client_key("  198.51.100.4  ", None) == "198.51.100.4"


def test_extract_client_key_falls_back_to_socket_address():
    assert extract_client_key(None, "127.0.0.1") == "127.0.0.1"
    assert extract_client_key(" , 10.0.0.1", "::1") == "::1"
    assert extract_client_key(None, None) == "unknown"


def test_ceil_seconds_rounds_up():
    assert ceil_seconds(0) == 0
    assert ceil_seconds(1) == 1
    assert ceil_seconds(1000) == 1
    assert ceil_seconds(58_001) == 59


def test_monotonic_to_iso_is_utc():
    stamp = monotonic_to_iso(5_000, 2_000)
    assert stamp.endswith("Z")
    assert datetime.fromisoformat(stamp.replace("Z", "+00:00")).tzinfo is not None


def test_prune_window_drops_boundary_and_keeps_order():
    record = ClientRecord(requests=[100, 200, 300, 400])
    prune_window(record, now=1_200, window_ms=1_000)
    assert record.requests == [300, 400]


def test_fresh_record_is_idle():
    assert ClientRecord().is_idle
    assert not ClientRecord(violations=1).is_idle
    assert not ClientRecord(requests=[1]).is_idle


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_WINDOW_SECONDS", "30")
    monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "5")
    monkeypatch.setenv("RATE_LIMIT_BAN_SECONDS", "90")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.delenv("RATE_LIMIT_BAN_THRESHOLD", raising=False)

    settings = Settings.from_env()

    assert settings.window_ms == 30_000
    assert settings.max_requests == 5
    assert settings.ban_threshold == 3
    assert settings.ban_duration_ms == 90_000
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize("value", ["abc", "0", "-4"])
def test_settings_rejects_bad_numbers(monkeypatch, value):
    monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", value)
    with pytest.raises(RuntimeError, match="RATE_LIMIT_MAX_REQUESTS"):
        Settings.from_env()


def test_json_formatter_includes_extras():
    record = logging.LogRecord("guard", logging.WARNING, __file__, 1, "denied", None, None)
    record.client_key = "10.0.0.1"
    record.status = 429

    payload = json.loads(JsonFormatter().format(record))

    assert payload == {
        "level": "WARNING",
        "message": "denied",
        "logger": "guard",
        "client_key": "10.0.0.1",
        "status": 429,
    }
