"""
Debounced diagram auto-save.

Responsibilities:
- Coalesce bursts of diagram change notifications into one write after a
  quiet period
- Bind each burst to the session that was active when it started, and skip
  the write if another session became active meanwhile

Without a running event loop (scripts, sync tests) every change is
written immediately.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from observability.logger import log_event
from spec import AUTOSAVE_QUIET_PERIOD_MS


class DiagramAutoSaver:
    """
    Change listener for the modeler.

    export()        -> current diagram serialization
    save(id, xml)   -> persist it for session `id`
    active_id()     -> live read of the active session id
    """

    def __init__(
        self,
        *,
        export: Callable[[], str],
        save: Callable[[str, str], bool],
        active_id: Callable[[], str],
        quiet_period_ms: int = AUTOSAVE_QUIET_PERIOD_MS,
    ) -> None:
        self._export = export
        self._save = save
        self._active_id = active_id
        self._quiet_period_s = max(quiet_period_ms, 0) / 1000.0

        self._handle: asyncio.TimerHandle | None = None
        self._burst_session_id: str | None = None
        self._changes_in_burst: int = 0

    @property
    def pending(self) -> bool:
        return self._burst_session_id is not None

    def notify_change(self) -> None:
        if self._burst_session_id is None:
            self._burst_session_id = self._active_id()
            self._changes_in_burst = 0
        self._changes_in_burst += 1

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.flush()
            return

        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self._quiet_period_s, self._on_quiet)

    def flush(self) -> bool:
        """Write the pending burst now. False if nothing was written."""
        self._cancel_timer()
        return self._write()

    def discard(self) -> None:
        """Drop the pending burst without writing."""
        self._cancel_timer()
        self._burst_session_id = None
        self._changes_in_burst = 0

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _on_quiet(self) -> None:
        self._handle = None
        self._write()

    def _write(self) -> bool:
        session_id = self._burst_session_id
        changes = self._changes_in_burst
        self._burst_session_id = None
        self._changes_in_burst = 0
        if session_id is None:
            return False

        if session_id != self._active_id():
            log_event({
                "event_type": "AUTOSAVE_SKIPPED_STALE",
                "level": "WARNING",
                "diagram_session_id": session_id,
                "active_session_id": self._active_id(),
            })
            return False

        try:
            xml = self._export()
            saved = self._save(session_id, xml)
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "AUTOSAVE_FAILED",
                "level": "ERROR",
                "diagram_session_id": session_id,
                "error": repr(e),
            })
            return False

        log_event({
            "event_type": "AUTOSAVE_WRITTEN",
            "level": "DEBUG",
            "diagram_session_id": session_id,
            "changes": changes,
            "saved": saved,
        })
        return saved
