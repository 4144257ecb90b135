"""
Diagram workspace: one process-wide editing context.

Responsibilities:
- Wire the store, the live diagram, the auto-saver, the tool dispatcher
  and the voice orchestrator together
- Keep the live diagram in sync with the active session
- Route finalized transcripts and title changes to the session that is
  active when they arrive

Non-responsibilities:
- No HTTP (server.routes)
- No audio or wire protocol (VoiceOrchestrator and its adapters)

The active session id is read through ActiveSessionRef at call time, never
captured, because a voice turn can outlive a session switch.
"""

from __future__ import annotations

from typing import Any

from adapters.live.base import LiveSession, LiveSessionFactory
from adapters.live.gemini_live import GeminiLiveSession
from audio.capture import AudioCapturePipeline
from audio.playback import AudioPlaybackScheduler
from config import AppConfig
from diagram.bpmn_xml import INITIAL_DIAGRAM, DiagramImportError
from diagram.modeler import DiagramModeler
from observability.logger import log_event
from orchestrator.voice_orchestrator import VoiceOrchestrator
from services.diagram_operations import DiagramMutationAPI
from services.tool_dispatcher import ToolCallDispatcher
from storage.autosave import DiagramAutoSaver
from storage.backend import JsonFileBackend
from storage.models import ChatMessage, DiagramVersion, Role, Session
from storage.session_store import SessionStore


class ActiveSessionRef:
    """Mutable cell holding the active session id."""

    def __init__(self, session_id: str) -> None:
        self._session_id = session_id

    def get(self) -> str:
        return self._session_id

    def set(self, session_id: str) -> None:
        self._session_id = session_id


class DiagramWorkspace:
    """Owns every long-lived component for one user."""

    def __init__(
        self,
        *,
        store: SessionStore,
        config: AppConfig | None = None,
        session_factory: LiveSessionFactory | None = None,
        capture: AudioCapturePipeline | None = None,
        playback: AudioPlaybackScheduler | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.store = store
        self.active = ActiveSessionRef(store.active_id)
        self._api_key: str | None = store.get_api_key()

        self.modeler = DiagramModeler()
        self.api = DiagramMutationAPI(self.modeler)
        self.dispatcher = ToolCallDispatcher(on_rename=self.rename_active_session)
        self._load_active_diagram()

        self.autosaver = DiagramAutoSaver(
            export=self.modeler.export_xml,
            save=self.store.update_session_diagram,
            active_id=self.active.get,
            quiet_period_ms=self.config.autosave_quiet_ms,
        )
        self.modeler.add_change_listener(self.autosaver.notify_change)

        self.voice = VoiceOrchestrator(
            session_factory=session_factory or self._build_live_session,
            dispatcher=self.dispatcher,
            api_key_provider=self.get_api_key,
            capture=capture,
            playback=playback,
            on_user_message=lambda text: self.record_message("user", text),
            on_assistant_message=lambda text: self.record_message("assistant", text),
        )

    @classmethod
    def from_config(cls, config: AppConfig) -> DiagramWorkspace:
        return cls(store=SessionStore(JsonFileBackend(config.data_dir)), config=config)

    def _build_live_session(self, api_key: str) -> LiveSession:
        return GeminiLiveSession(
            api_key=api_key,
            model=self.config.live_model,
            voice=self.config.live_voice,
            api_version=self.config.live_api_version,
        )

    # ------------------------------------------------------------------
    # Active diagram
    # ------------------------------------------------------------------

    @property
    def active_session(self) -> Session:
        return self.store.active_session

    def _load_active_diagram(self) -> None:
        """Replace the live diagram; tool calls fail fast until it is back."""
        self.dispatcher.detach()
        session = self.store.active_session
        try:
            self.modeler.import_xml(session.bpmn_xml)
        except DiagramImportError as e:
            log_event({
                "event_type": "DIAGRAM_IMPORT_FAILED",
                "level": "ERROR",
                "diagram_session_id": session.id,
                "error": str(e),
            })
            self.modeler.import_xml(INITIAL_DIAGRAM)
        self.api.reset_layout()
        self.dispatcher.attach(self.api)

    def _sync_active(self) -> None:
        """Reload the live diagram if the store's active session changed."""
        active_id = self.store.active_id
        if active_id == self.active.get():
            return
        self.active.set(active_id)
        self._load_active_diagram()
        log_event({
            "event_type": "ACTIVE_SESSION_CHANGED",
            "diagram_session_id": active_id,
        })

    def diagram_state(self) -> dict[str, Any]:
        return {"sessionId": self.active.get(), **self.api.get_diagram_state()}

    def export_xml(self) -> str:
        return self.api.export_diagram()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, name: str | None = None) -> Session:
        self.autosaver.flush()
        session = self.store.create_session(name)
        self._sync_active()
        return session

    def switch_session(self, session_id: str) -> bool:
        if self.store.get(session_id) is None:
            return False
        self.autosaver.flush()
        self.store.switch_session(session_id)
        self._sync_active()
        return True

    def delete_session(self, session_id: str) -> bool:
        self.autosaver.flush()
        ok = self.store.delete_session(session_id)
        self._sync_active()
        return ok

    def rename_session(self, session_id: str, name: str) -> bool:
        return self.store.rename_session(session_id, name)

    def rename_active_session(self, title: str) -> bool:
        return self.store.rename_session(self.active.get(), title)

    def record_message(self, role: Role, text: str) -> ChatMessage | None:
        return self.store.append_message(self.active.get(), role, text)

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    def create_version(self, session_id: str, label: str | None = None) -> DiagramVersion | None:
        if session_id == self.active.get():
            self.autosaver.flush()
        return self.store.create_version(session_id, label)

    def restore_version(self, session_id: str, version_id: str) -> bool:
        is_active = session_id == self.active.get()
        if is_active:
            self.autosaver.discard()
        ok = self.store.restore_version(session_id, version_id)
        if ok and is_active:
            self._load_active_diagram()
        return ok

    def delete_version(self, session_id: str, version_id: str) -> bool:
        return self.store.delete_version(session_id, version_id)

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def get_api_key(self) -> str | None:
        return self._api_key or self.config.gemini_api_key

    def set_api_key(self, api_key: str | None) -> None:
        self._api_key = api_key or None
        self.store.set_api_key(self._api_key)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def shutdown(self) -> None:
        await self.voice.shutdown()
        self.dispatcher.detach()
        self.autosaver.flush()
