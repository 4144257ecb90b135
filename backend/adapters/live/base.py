"""
Live voice session contract.

Purpose:
- Define the interface the orchestrator drives: one long-lived,
  bidirectional streaming session with a remote voice model.
- Keep lifecycle policy (state, retries, callbacks) OUT of the adapter.

Rules:
- This file contains NO logic.
- No retries.
- No knowledge of diagrams, transcripts, or playback.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Callable, Mapping, Sequence

from audio.frames import AudioFrame
from orchestrator.messages import FunctionResult


class LiveSessionError(RuntimeError):
    """Handshake failure, protocol violation, or abnormal remote close."""


class LiveSession(ABC):
    """
    Abstract base class for a remote live session.

    The adapter is a *dumb pipe*:
    frames/text/tool results -> vendor -> decoded server messages.
    """

    @abstractmethod
    async def open(self) -> None:
        """
        Connect and complete the setup handshake.

        Contract:
        - Returns only once the remote side acknowledged the setup.
        - Raises LiveSessionError on any failure; nothing is left open.
        """
        raise NotImplementedError

    @abstractmethod
    async def send_audio(self, frame: AudioFrame) -> None:
        """Send one realtime PCM16 frame."""
        raise NotImplementedError

    @abstractmethod
    async def send_text(self, text: str) -> None:
        """Send one complete user text turn."""
        raise NotImplementedError

    @abstractmethod
    async def send_tool_response(self, results: Sequence[FunctionResult]) -> None:
        """Answer every call of one tool-call message in a single reply."""
        raise NotImplementedError

    @abstractmethod
    def messages(self) -> AsyncIterator[Mapping[str, Any]]:
        """
        Iterate decoded inbound messages in arrival order.

        Contract:
        - Ends normally when the remote side closes cleanly.
        - Raises LiveSessionError when the connection fails.
        """
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        """
        Close the session.

        Contract:
        - Idempotent.
        - Must NOT raise, including when the remote side is already gone.
        """
        raise NotImplementedError


LiveSessionFactory = Callable[[str], LiveSession]
"""Builds a session for the given API key."""
