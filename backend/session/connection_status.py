"""
Connection lifecycle of the remote voice session.

Owned exclusively by the VoiceOrchestrator. Transitions live in
orchestrator.lifecycle; this module is pure data.
"""

from __future__ import annotations

from enum import Enum


class ConnectionState(str, Enum):
    """
    Remote session connection status.

    Disconnected -> Connecting -> Connected | Error
    Connected -> Disconnected (remote close) | Error (remote error)
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"
