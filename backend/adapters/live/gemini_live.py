"""
Gemini Live adapter (BidiGenerateContent over WebSocket).

Core model:
- One WebSocket per voice connection; it stays open across turns.
- open() sends the setup message and waits for setupComplete.
- Outbound: realtimeInput audio, clientContent text turns, toolResponse.
- Inbound: JSON messages, yielded as-is by messages(). Binary frames carry
  UTF-8 JSON as well.

Design constraints:
- Adapter does not interpret server content (orchestrator.messages does).
- Adapter does not own connection state (the orchestrator does).
"""

from __future__ import annotations

import asyncio
import json
import urllib.parse
from typing import Any, AsyncIterator, Callable, Mapping, Sequence

from websockets.asyncio.client import ClientConnection, connect as ws_connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from adapters.live.base import LiveSession, LiveSessionError
from adapters.live.prompts import FUNCTION_DECLARATIONS, SYSTEM_INSTRUCTION_V1
from audio.frames import AudioFrame
from audio.pcm import pcm16_to_base64
from observability.logger import log_event
from orchestrator.messages import FunctionResult
from spec import (
    CAPTURE_MIME_TYPE,
    LIVE_ACTIVITY_HANDLING,
    LIVE_API_VERSION_DEFAULT,
    LIVE_HOST,
    LIVE_MAX_MESSAGE_BYTES,
    LIVE_MODEL_DEFAULT,
    LIVE_RESPONSE_MODALITIES,
    LIVE_SETUP_TIMEOUT_S,
    LIVE_VOICE_DEFAULT,
)


ConnectFactory = Callable[..., Any]


def _decode(raw: str | bytes) -> dict[str, Any]:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


class GeminiLiveSession(LiveSession):
    """
    Gemini Live session speaking the raw wire protocol.

    connect_factory is websockets' connect by default; tests inject a fake
    returning an object with send/recv/close and async iteration.
    """

    def __init__(
        self,
        *,
        api_key: str,
        model: str = LIVE_MODEL_DEFAULT,
        voice: str = LIVE_VOICE_DEFAULT,
        api_version: str = LIVE_API_VERSION_DEFAULT,
        system_instruction: str = SYSTEM_INSTRUCTION_V1,
        function_declarations: Sequence[Mapping[str, Any]] = tuple(FUNCTION_DECLARATIONS),
        setup_timeout_s: float = LIVE_SETUP_TIMEOUT_S,
        connect_factory: ConnectFactory | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")

        self._api_key = api_key
        self._model = model
        self._voice = voice
        self._api_version = api_version
        self._system_instruction = system_instruction
        self._function_declarations = list(function_declarations)
        self._setup_timeout_s = setup_timeout_s
        self._connect = connect_factory or ws_connect

        self._ws: ClientConnection | None = None
        self._closed: bool = False

    # -------------------------------------------------------------------------
    # Wire format
    # -------------------------------------------------------------------------

    def build_url(self) -> str:
        qs = urllib.parse.urlencode({"key": self._api_key})
        return (
            f"wss://{LIVE_HOST}/ws/google.ai.generativelanguage."
            f"{self._api_version}.GenerativeService.BidiGenerateContent?{qs}"
        )

    def setup_message(self) -> dict[str, Any]:
        model = self._model if self._model.startswith("models/") else f"models/{self._model}"
        return {
            "setup": {
                "model": model,
                "generationConfig": {
                    "responseModalities": list(LIVE_RESPONSE_MODALITIES),
                    "speechConfig": {
                        "voiceConfig": {
                            "prebuiltVoiceConfig": {"voiceName": self._voice},
                        },
                    },
                },
                "systemInstruction": {"parts": [{"text": self._system_instruction}]},
                "tools": [{"functionDeclarations": self._function_declarations}],
                "realtimeInputConfig": {"activityHandling": LIVE_ACTIVITY_HANDLING},
                "inputAudioTranscription": {},
                "outputAudioTranscription": {},
            }
        }

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def open(self) -> None:
        if self._ws is not None:
            return
        self._closed = False

        try:
            await asyncio.wait_for(self._handshake(), timeout=self._setup_timeout_s)
        except asyncio.TimeoutError as e:
            await self.close()
            raise LiveSessionError(
                f"setup not acknowledged within {self._setup_timeout_s}s"
            ) from e
        except LiveSessionError:
            await self.close()
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            await self.close()
            raise LiveSessionError(f"live connect failed: {e!r}") from e

        log_event({
            "event_type": "LIVE_SETUP_COMPLETE",
            "model": self._model,
            "voice": self._voice,
        })

    async def _handshake(self) -> None:
        self._ws = await self._connect(self.build_url(), max_size=LIVE_MAX_MESSAGE_BYTES)
        await self._ws.send(json.dumps(self.setup_message()))

        raw = await self._ws.recv()
        try:
            data = _decode(raw)
        except ValueError as e:
            raise LiveSessionError(f"undecodable setup reply: {e}") from e
        if "setupComplete" not in data:
            raise LiveSessionError(f"expected setupComplete, got keys {sorted(data)}")

    async def close(self) -> None:
        self._closed = True
        ws = self._ws
        self._ws = None
        if ws is None:
            return
        try:
            await ws.close()
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "LIVE_CLOSE_FAILED",
                "level": "DEBUG",
                "error": repr(e),
            })

    # -------------------------------------------------------------------------
    # Outbound
    # -------------------------------------------------------------------------

    async def _send(self, payload: dict[str, Any]) -> None:
        ws = self._ws
        if ws is None:
            raise LiveSessionError("session is not open")
        try:
            await ws.send(json.dumps(payload))
        except ConnectionClosed as e:
            raise LiveSessionError(f"send on closed session: {e}") from e

    async def send_audio(self, frame: AudioFrame) -> None:
        await self._send({
            "realtimeInput": {
                "audio": {
                    "data": pcm16_to_base64(frame.pcm_bytes),
                    "mimeType": CAPTURE_MIME_TYPE,
                },
            },
        })

    async def send_text(self, text: str) -> None:
        await self._send({
            "clientContent": {
                "turns": [{"role": "user", "parts": [{"text": text}]}],
                "turnComplete": True,
            },
        })

    async def send_tool_response(self, results: Sequence[FunctionResult]) -> None:
        await self._send({
            "toolResponse": {
                "functionResponses": [r.to_wire() for r in results],
            },
        })

    # -------------------------------------------------------------------------
    # Inbound
    # -------------------------------------------------------------------------

    async def messages(self) -> AsyncIterator[dict[str, Any]]:
        ws = self._ws
        if ws is None:
            return

        try:
            async for raw in ws:
                try:
                    data = _decode(raw)
                except ValueError as e:
                    log_event({
                        "event_type": "LIVE_MESSAGE_UNDECODABLE",
                        "level": "WARNING",
                        "error": str(e),
                    })
                    continue
                yield data
        except ConnectionClosedOK:
            return
        except ConnectionClosed as e:
            if self._closed:
                return
            raise LiveSessionError(f"connection lost: {e}") from e
