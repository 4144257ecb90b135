"""
Timing helpers for observability.

Responsibilities:
- Measure durations using monotonic time
- Emit one METRIC_TIMER record per measurement via observability.logger
- Never aggregate

Durations use monotonic time; record timestamps use wall-clock time.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator

from observability.logger import log_event


def emit_timer(
    name: str,
    duration_ms: int,
    *,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit a single timer metric record."""
    log_event({
        "event_type": "METRIC_TIMER",
        "metric": name,
        "value_ms": duration_ms,
        "details": details or {},
    })


@contextmanager
def timed(
    name: str,
    *,
    details: dict[str, Any] | None = None,
) -> Iterator[dict[str, Any]]:
    """
    Measure the enclosed block and emit exactly one metric.

    The yielded dict is merged into the metric details, so the block can
    attach outcome fields after the fact:

        with timed("tool_call", details={"tool": name}) as extra:
            result = await run()
            extra["success"] = result["success"]

    Exceptions inside the block propagate; the metric is still emitted.
    """
    extra: dict[str, Any] = {}
    start_ns = time.monotonic_ns()
    try:
        yield extra
    finally:
        duration_ms = (time.monotonic_ns() - start_ns) // 1_000_000
        emit_timer(name, duration_ms, details={**(details or {}), **extra})
