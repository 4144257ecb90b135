"""
Inbound server message model for the live voice session.

Rules:
- Messages describe facts received from the remote session.
- Data only; the orchestrator decides what to do with them.
- Parsing is total: unknown or malformed parts are ignored, never raised.

A single raw message may carry several facts at once (audio and
turnComplete, for example), so parsing yields one flat record with every
field filled in.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


# =============================================================================
# Tool calls
# =============================================================================

@dataclass(frozen=True)
class FunctionCall:
    """A remote request to run one named tool."""
    call_id: str
    name: str
    args: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FunctionResult:
    """Exactly one per FunctionCall, returned in a batch."""
    call_id: str
    name: str
    response: Mapping[str, Any]

    @property
    def success(self) -> bool:
        return bool(self.response.get("success")) and "error" not in self.response

    def to_wire(self) -> dict[str, Any]:
        return {"id": self.call_id, "name": self.name, "response": dict(self.response)}


# =============================================================================
# Server message
# =============================================================================

@dataclass(frozen=True)
class ServerMessage:
    """Flattened view of one inbound message."""
    function_calls: tuple[FunctionCall, ...] = ()
    audio_chunks: tuple[str, ...] = ()
    input_text: str | None = None
    output_text: str | None = None
    interrupted: bool = False
    turn_complete: bool = False
    setup_complete: bool = False
    go_away: bool = False

    @property
    def is_empty(self) -> bool:
        return not (
            self.function_calls
            or self.audio_chunks
            or self.input_text
            or self.output_text
            or self.interrupted
            or self.turn_complete
            or self.setup_complete
            or self.go_away
        )


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _transcription_text(value: Any) -> str | None:
    text = _mapping(value).get("text")
    return text if isinstance(text, str) and text else None


def _parse_function_calls(tool_call: Mapping[str, Any]) -> tuple[FunctionCall, ...]:
    calls: list[FunctionCall] = []
    for raw in tool_call.get("functionCalls") or ():
        raw = _mapping(raw)
        name = raw.get("name")
        if not isinstance(name, str) or not name:
            continue
        calls.append(FunctionCall(
            call_id=str(raw.get("id", "")),
            name=name,
            args=dict(_mapping(raw.get("args"))),
        ))
    return tuple(calls)


def _parse_audio(model_turn: Mapping[str, Any]) -> tuple[str, ...]:
    chunks: list[str] = []
    for part in model_turn.get("parts") or ():
        inline = _mapping(_mapping(part).get("inlineData"))
        data = inline.get("data")
        mime = str(inline.get("mimeType", "audio/pcm"))
        if isinstance(data, str) and data and mime.startswith("audio/"):
            chunks.append(data)
    return tuple(chunks)


def parse_server_message(raw: Mapping[str, Any]) -> ServerMessage:
    """
    Flatten one decoded BidiGenerateContent server message.

    Recognized top-level keys: setupComplete, serverContent, toolCall, goAway.
    """
    content = _mapping(raw.get("serverContent"))
    return ServerMessage(
        function_calls=_parse_function_calls(_mapping(raw.get("toolCall"))),
        audio_chunks=_parse_audio(_mapping(content.get("modelTurn"))),
        input_text=_transcription_text(content.get("inputTranscription")),
        output_text=_transcription_text(content.get("outputTranscription")),
        interrupted=bool(content.get("interrupted")),
        turn_complete=bool(content.get("turnComplete")),
        setup_complete="setupComplete" in raw,
        go_away="goAway" in raw,
    )
