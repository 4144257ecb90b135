# pylint: disable=missing-module-docstring,missing-function-docstring

import json
from typing import Any

import pytest

from observability import logger, metrics


def _capture(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    captured: list[str] = []
    monkeypatch.setattr(logger, "_print", captured.append)
    monkeypatch.setattr(logger, "_min_level", logger._LEVELS["DEBUG"])  # pylint: disable=protected-access
    monkeypatch.setattr(logger, "_json_output", True)
    return captured


def test_log_event_emits_valid_jsonl(monkeypatch: pytest.MonkeyPatch) -> None:
    """
    - log_event emits exactly one JSONL line
    - caller fields are preserved
    - ts_ms and level are stamped when absent
    """
    captured = _capture(monkeypatch)

    payload: dict[str, Any] = {
        "event_type": "TEST",
        "value": 123,
    }

    logger.log_event(payload)

    assert len(captured) == 1
    decoded = json.loads(captured[0])
    assert decoded["event_type"] == "TEST"
    assert decoded["value"] == 123
    assert decoded["level"] == "INFO"
    assert isinstance(decoded["ts_ms"], int)

    # caller's mapping is not mutated
    assert "ts_ms" not in payload


def test_log_event_keeps_explicit_ts_and_level(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _capture(monkeypatch)

    logger.log_event({"event_type": "X", "ts_ms": 5, "level": "WARNING"})

    decoded = json.loads(captured[0])
    assert decoded["ts_ms"] == 5
    assert decoded["level"] == "WARNING"


def test_log_event_drops_records_below_min_level(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _capture(monkeypatch)
    monkeypatch.setattr(logger, "_min_level", logger._LEVELS["WARNING"])  # pylint: disable=protected-access

    logger.log_event({"event_type": "QUIET", "level": "DEBUG"})
    logger.log_event({"event_type": "LOUD", "level": "ERROR"})

    assert len(captured) == 1
    assert json.loads(captured[0])["event_type"] == "LOUD"


def test_log_event_never_raises_on_unserializable(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _capture(monkeypatch)

    logger.log_event({"event_type": "BAD", "obj": object()})

    decoded = json.loads(captured[0])
    assert decoded["event_type"] == "LOGGER_SERIALIZATION_ERROR"
    assert decoded["level"] == "ERROR"


def test_text_output(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _capture(monkeypatch)
    monkeypatch.setattr(logger, "_json_output", False)

    logger.log_event({"event_type": "PLAIN", "level": "INFO", "n": 1})

    assert captured[0].startswith("INFO PLAIN")
    assert "n=1" in captured[0]


def test_timed_emits_one_metric_with_extra_details(monkeypatch: pytest.MonkeyPatch) -> None:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(metrics, "log_event", emitted.append)

    with metrics.timed("tool_call", details={"tool": "createElement"}) as extra:
        extra["success"] = True

    assert len(emitted) == 1
    record = emitted[0]
    assert record["event_type"] == "METRIC_TIMER"
    assert record["metric"] == "tool_call"
    assert record["value_ms"] >= 0
    assert record["details"] == {"tool": "createElement", "success": True}


def test_timed_emits_even_when_block_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(metrics, "log_event", emitted.append)

    with pytest.raises(RuntimeError):
        with metrics.timed("live_handshake"):
            raise RuntimeError("boom")

    assert len(emitted) == 1
