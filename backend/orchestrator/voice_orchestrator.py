"""
Voice session orchestrator.

Responsibilities:
- Own the connection lifecycle (ConnectionState) of one live session
- Pump captured microphone frames to the session in capture order
- Apply every inbound server message: tool calls, audio, transcripts,
  interruption, turn completion (in that order)
- Tear everything down from any state via disconnect()

Non-responsibilities:
- No diagram logic (ToolCallDispatcher)
- No persistence (callers receive finalized text through callbacks)
- No wire format (LiveSession adapter)

Concurrency:
- Everything runs on one event loop. The receive loop processes server
  messages strictly in arrival order and awaits each one fully before
  reading the next.
- Audio device callbacks hand frames over with call_soon_threadsafe
  (see audio.capture); they never touch orchestrator state directly.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Mapping

from adapters.live.base import LiveSession, LiveSessionError, LiveSessionFactory
from audio.capture import AudioCapturePipeline
from audio.frames import AudioFrame
from audio.playback import AudioPlaybackScheduler
from context.transcript import TranscriptAccumulator
from observability.logger import log_event
from observability.metrics import timed
from orchestrator.lifecycle import LifecycleEvent, next_state
from orchestrator.messages import FunctionResult, ServerMessage, parse_server_message
from services.tool_dispatcher import ToolCallDispatcher
from session.connection_status import ConnectionState
from spec import CONNECT_SETTLE_TIMEOUT_S, TOOL_NOTICE_TEMPLATE


TextCallback = Callable[[str], None]
StateCallback = Callable[[ConnectionState], None]
ApiKeyProvider = Callable[[], str | None]


def _now_ms() -> int:
    return int(time.time() * 1000)


class VoiceOrchestrator:
    """
    Single owner of the remote session, the microphone and the speaker.

    Public control surface:
    - connect() / disconnect()
    - start_listening() / stop_listening()
    - send_text_message(text)

    Outbound notifications (all optional, all guarded):
    - on_user_message(text)       finalized user turn
    - on_assistant_message(text)  finalized assistant turn, tool notices
    - on_state_change(state)
    """

    def __init__(
        self,
        *,
        session_factory: LiveSessionFactory,
        dispatcher: ToolCallDispatcher,
        api_key_provider: ApiKeyProvider,
        capture: AudioCapturePipeline | None = None,
        playback: AudioPlaybackScheduler | None = None,
        on_user_message: TextCallback | None = None,
        on_assistant_message: TextCallback | None = None,
        on_state_change: StateCallback | None = None,
        settle_timeout_s: float = CONNECT_SETTLE_TIMEOUT_S,
    ) -> None:
        self._session_factory = session_factory
        self._dispatcher = dispatcher
        self._api_key_provider = api_key_provider
        self._capture = capture or AudioCapturePipeline()
        self._playback = playback or AudioPlaybackScheduler()

        self.on_user_message = on_user_message
        self.on_assistant_message = on_assistant_message
        self.on_state_change = on_state_change

        self._settle_timeout_s = settle_timeout_s

        self._state: ConnectionState = ConnectionState.DISCONNECTED
        self._session: LiveSession | None = None
        self._tearing_down: bool = False
        self._settled: asyncio.Event | None = None

        self._recv_task: asyncio.Task[None] | None = None
        self._send_task: asyncio.Task[None] | None = None
        self._outbound: asyncio.Queue[AudioFrame] | None = None

        self._transcripts = TranscriptAccumulator()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_listening(self) -> bool:
        return self._capture.is_listening

    @property
    def has_session(self) -> bool:
        return self._session is not None

    @property
    def transcripts(self) -> TranscriptAccumulator:
        return self._transcripts

    @property
    def playback(self) -> AudioPlaybackScheduler:
        return self._playback

    def status(self) -> dict[str, Any]:
        return {
            "state": self._state.value,
            "listening": self.is_listening,
            "session_open": self.has_session,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _apply(self, event: LifecycleEvent, **details: Any) -> None:
        new_state = next_state(self._state, event, tearing_down=self._tearing_down)
        if new_state is None:
            log_event({
                "event_type": "LIFECYCLE_EVENT_IGNORED",
                "level": "DEBUG",
                "state": self._state.value,
                "lifecycle_event": event.value,
                "tearing_down": self._tearing_down,
            })
            return

        old_state = self._state
        self._state = new_state
        log_event({
            "event_type": "CONNECTION_STATE_CHANGED",
            "level": "ERROR" if new_state is ConnectionState.ERROR else "INFO",
            "from": old_state.value,
            "to": new_state.value,
            "lifecycle_event": event.value,
            **details,
        })

        if new_state is not old_state and self.on_state_change is not None:
            try:
                self.on_state_change(new_state)
            except Exception as e:  # pylint: disable=broad-exception-caught
                log_event({
                    "event_type": "CALLBACK_FAILED",
                    "level": "ERROR",
                    "callback": "on_state_change",
                    "error": repr(e),
                })

    async def connect(self) -> None:
        """
        Open the remote session. No-op if one already exists.

        Never raises: failures end in ConnectionState.ERROR.
        """
        if self._session is not None:
            return

        self._tearing_down = False
        settled = asyncio.Event()
        self._settled = settled
        self._apply(LifecycleEvent.CONNECT_REQUESTED)

        api_key = self._api_key_provider()
        if not api_key:
            self._apply(LifecycleEvent.REMOTE_FAILED, reason="missing_api_key")
            settled.set()
            return

        try:
            session = self._session_factory(api_key)
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._apply(LifecycleEvent.REMOTE_FAILED, reason=repr(e))
            settled.set()
            return

        self._session = session

        failure: Exception | None = None
        with timed("live_handshake") as extra:
            try:
                await session.open()
            except Exception as e:  # pylint: disable=broad-exception-caught
                failure = e
            extra["ok"] = failure is None

        if failure is not None:
            if self._session is not session:
                # Abandoned attempt; a later connect() owns the lifecycle now
                settled.set()
                return
            self._session = None
            self._apply(LifecycleEvent.REMOTE_FAILED, reason=str(failure))
            settled.set()
            return

        if self._tearing_down or self._session is not session:
            # disconnect() ran while the handshake was in flight
            await self._close_quietly(session)
            settled.set()
            return

        queue: asyncio.Queue[AudioFrame] = asyncio.Queue()
        self._outbound = queue
        self._send_task = asyncio.create_task(self._send_loop(session, queue))
        self._recv_task = asyncio.create_task(self._receive_loop(session))

        self._apply(LifecycleEvent.REMOTE_OPENED)
        settled.set()

    async def disconnect(self) -> None:
        """
        Explicit teardown. Safe from any state and safe to repeat.

        Order: capture, playback, remote session, transcripts, state.
        """
        self._tearing_down = True

        self._capture.stop()
        self._playback.stop_all()

        session = self._session
        self._session = None
        self._outbound = None
        await self._cancel_tasks()
        if session is not None:
            await self._close_quietly(session)

        self._transcripts.reset()
        self._apply(LifecycleEvent.DISCONNECT_REQUESTED)

        if self._settled is not None:
            self._settled.set()

    async def shutdown(self) -> None:
        """Disconnect and release the output device."""
        await self.disconnect()
        self._playback.close()

    async def _ensure_connected(self) -> bool:
        """
        Implicit connect for the control operations.

        Waits until the lifecycle settles (Connected or Error), bounded by
        settle_timeout_s. True only when a usable session exists.
        """
        if self._session is None:
            await self.connect()
        elif self._state is ConnectionState.CONNECTING and self._settled is not None:
            try:
                await asyncio.wait_for(self._settled.wait(), self._settle_timeout_s)
            except asyncio.TimeoutError:
                log_event({
                    "event_type": "CONNECT_SETTLE_TIMEOUT",
                    "level": "WARNING",
                    "timeout_s": self._settle_timeout_s,
                })

        return self._state is ConnectionState.CONNECTED and self._session is not None

    async def _drop_session(self, session: LiveSession, event: LifecycleEvent, **details: Any) -> None:
        """Remote side ended the session; release everything bound to it."""
        if self._session is not session or self._tearing_down:
            return

        self._session = None
        self._outbound = None
        self._capture.stop()
        self._playback.stop_all()
        self._transcripts.reset()

        send_task = self._send_task
        self._send_task = None
        self._recv_task = None
        if send_task is not None:
            send_task.cancel()

        await self._close_quietly(session)
        self._apply(event, **details)

    async def _cancel_tasks(self) -> None:
        current = asyncio.current_task()
        tasks = [t for t in (self._recv_task, self._send_task) if t is not None]
        self._recv_task = None
        self._send_task = None

        pending = []
        for task in tasks:
            if task is current or task.done():
                continue
            task.cancel()
            pending.append(task)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _close_quietly(self, session: LiveSession) -> None:
        try:
            await session.close()
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "LIVE_CLOSE_FAILED",
                "level": "DEBUG",
                "error": repr(e),
            })

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    async def start_listening(self) -> bool:
        """
        Connect if needed, then start the microphone.

        Returns False (logged, not raised) when no session could be
        established or the microphone could not be opened.
        """
        if not await self._ensure_connected():
            log_event({
                "event_type": "START_LISTENING_SKIPPED",
                "level": "WARNING",
                "reason": "no_session",
                "state": self._state.value,
            })
            return False

        if self._capture.is_listening:
            return True

        session = self._session
        try:
            started = await self._capture.start(self._on_captured_frame)
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "CAPTURE_START_FAILED",
                "level": "ERROR",
                "error": repr(e),
            })
            self._capture.stop()
            return False

        if not started or self._session is not session or self._tearing_down:
            # Torn down while the microphone was opening
            self._capture.stop()
            log_event({
                "event_type": "START_LISTENING_SKIPPED",
                "level": "WARNING",
                "reason": "session_closed",
                "state": self._state.value,
            })
            return False

        return True

    def stop_listening(self) -> None:
        """Idempotent."""
        self._capture.stop()

    def _on_captured_frame(self, frame: AudioFrame) -> None:
        queue = self._outbound
        if queue is None:
            return
        queue.put_nowait(frame)

    async def _send_loop(self, session: LiveSession, queue: asyncio.Queue[AudioFrame]) -> None:
        send_failed = False
        while True:
            frame = await queue.get()
            if send_failed:
                continue
            try:
                await session.send_audio(frame)
            except LiveSessionError as e:
                # Receive loop reports the dead connection; drop frames quietly
                send_failed = True
                log_event({
                    "event_type": "AUDIO_SEND_FAILED",
                    "level": "WARNING",
                    "sequence_num": frame.sequence_num,
                    "error": str(e),
                })

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    async def send_text_message(self, text: str) -> bool:
        """
        Send one typed user turn, connecting first if needed.

        The text is reported through on_user_message before it is sent.
        """
        text = text.strip()
        if not text:
            return False

        if not await self._ensure_connected():
            log_event({
                "event_type": "SEND_TEXT_SKIPPED",
                "level": "WARNING",
                "reason": "no_session",
                "state": self._state.value,
            })
            return False

        session = self._session
        if session is None:
            return False

        self._emit_user(text)
        try:
            await session.send_text(text)
        except LiveSessionError as e:
            log_event({
                "event_type": "SEND_TEXT_FAILED",
                "level": "ERROR",
                "error": str(e),
            })
            return False
        return True

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def _receive_loop(self, session: LiveSession) -> None:
        try:
            async for raw in session.messages():
                await self.handle_server_message(raw)
        except asyncio.CancelledError:
            raise
        except LiveSessionError as e:
            await self._drop_session(session, LifecycleEvent.REMOTE_ERROR, reason=str(e))
            return
        except Exception as e:  # pylint: disable=broad-exception-caught
            await self._drop_session(session, LifecycleEvent.REMOTE_ERROR, reason=repr(e))
            return

        await self._drop_session(session, LifecycleEvent.REMOTE_CLOSED)

    async def handle_server_message(self, raw: Mapping[str, Any]) -> None:
        """
        Apply one inbound message. Never raises.

        The five steps are independent and all apply to the same message.
        """
        try:
            msg = parse_server_message(raw)
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "SERVER_MESSAGE_UNPARSEABLE",
                "level": "ERROR",
                "error": repr(e),
            })
            return

        if msg.go_away:
            log_event({"event_type": "LIVE_GO_AWAY", "level": "WARNING"})

        # 1. tool calls
        if msg.function_calls:
            await self._run_tool_calls(msg)

        # 2. audio
        for chunk in msg.audio_chunks:
            self._guarded("schedule_audio", self._playback.schedule, chunk)

        # 3. partial transcripts
        if msg.input_text:
            self._transcripts.append_input(msg.input_text)
        if msg.output_text:
            self._transcripts.append_output(msg.output_text)

        # 4. interruption
        if msg.interrupted:
            self._handle_interrupted()

        # 5. turn complete
        if msg.turn_complete:
            self._handle_turn_complete()

    async def _run_tool_calls(self, msg: ServerMessage) -> None:
        results: list[FunctionResult] = []
        for call in msg.function_calls:
            self._emit_assistant(TOOL_NOTICE_TEMPLATE.format(name=call.name))
            results.append(await self._dispatcher.dispatch(call))

        session = self._session
        if session is None:
            log_event({
                "event_type": "TOOL_RESPONSE_DROPPED",
                "level": "WARNING",
                "reason": "no_session",
                "calls": [c.name for c in msg.function_calls],
            })
            return

        try:
            await session.send_tool_response(results)
        except LiveSessionError as e:
            log_event({
                "event_type": "TOOL_RESPONSE_SEND_FAILED",
                "level": "ERROR",
                "error": str(e),
            })
            return

        log_event({
            "event_type": "TOOL_RESPONSE_SENT",
            "calls": len(results),
            "failed": sum(1 for r in results if not r.success),
        })

    def _handle_interrupted(self) -> None:
        stopped = self._playback.interrupt()
        discarded_in, discarded_out = self._transcripts.interrupt()
        log_event({
            "event_type": "TURN_INTERRUPTED",
            "units_stopped": stopped,
            "playback_clock_s": self._playback.clock.now(),
            "discarded_input_chars": len(discarded_in),
            "discarded_output_chars": len(discarded_out),
        })

    def _handle_turn_complete(self) -> None:
        turn = self._transcripts.complete_turn()
        if turn.user_text is not None:
            self._emit_user(turn.user_text)
        if turn.assistant_text is not None:
            self._emit_assistant(turn.assistant_text)
        log_event({
            "event_type": "TURN_COMPLETE",
            "ts_ms": _now_ms(),
            "user_chars": len(turn.user_text or ""),
            "assistant_chars": len(turn.assistant_text or ""),
        })

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def _emit_user(self, text: str) -> None:
        if self.on_user_message is not None:
            self._guarded("on_user_message", self.on_user_message, text)

    def _emit_assistant(self, text: str) -> None:
        if self.on_assistant_message is not None:
            self._guarded("on_assistant_message", self.on_assistant_message, text)

    def _guarded(self, step: str, fn: Callable[[Any], Any], arg: Any) -> None:
        try:
            fn(arg)
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "CALLBACK_FAILED",
                "level": "ERROR",
                "callback": step,
                "error": repr(e),
            })
