"""
JSONL event logger.

- Write one JSON object per line
- Output to stdout
- No buffering, no batching
- No side effects beyond logging
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Mapping, Callable


_LEVELS: dict[str, int] = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
}


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print

_min_level: int = _LEVELS["INFO"]
_json_output: bool = True


def configure(*, level: str = "INFO", json_output: bool = True) -> None:
    """
    Set the minimum level and output format.

    Unknown level names fall back to INFO.
    """
    global _min_level, _json_output  # pylint: disable=global-statement
    _min_level = _LEVELS.get(level.upper(), _LEVELS["INFO"])
    _json_output = json_output


def _format_text(event: Mapping[str, Any]) -> str:
    head = f"{event.get('level', 'INFO')} {event.get('event_type', '-')}"
    rest = " ".join(
        f"{k}={v}" for k, v in event.items()
        if k not in ("level", "event_type")
    )
    return f"{head} {rest}".rstrip()


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single event record.

    The caller supplies:
    - event_type
    - any structured context (diagram session id, tool name, ...)

    This function:
    - Stamps ts_ms and level when the caller did not
    - Drops records below the configured level
    - Writes exactly one line and flushes
    - Never raises
    """
    record: dict[str, Any] = dict(event)
    record.setdefault("ts_ms", time.time_ns() // 1_000_000)
    record.setdefault("level", "INFO")

    if _LEVELS.get(str(record["level"]).upper(), _LEVELS["INFO"]) < _min_level:
        return

    if not _json_output:
        _print(_format_text(record))
        return

    try:
        line = json.dumps(record, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        # Last-resort fallback: logging must never crash the runtime
        fallback: dict[str, Any] = {
            "ts_ms": record.get("ts_ms"),
            "level": "ERROR",
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)
