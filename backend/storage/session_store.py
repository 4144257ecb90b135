"""
Session/version store.

Responsibilities:
- Own the authoritative list of diagram sessions and the active id
- Maintain the invariant that the session set is never empty
- Persist both records after every mutating call

Non-responsibilities:
- No diagram parsing (the serialization is opaque text here)
- No knowledge of the voice orchestrator

Persistence failures are logged (STORE_PERSIST_FAILED) and the in-memory
state keeps working un-persisted.
"""

from __future__ import annotations

import json
from typing import Any, Sequence

from observability.logger import log_event
from spec import (
    DEFAULT_SESSION_NAME,
    STORAGE_KEY_ACTIVE_SESSION,
    STORAGE_KEY_API_KEY,
    STORAGE_KEY_SESSIONS,
)
from storage.backend import StorageBackend
from storage.models import ChatMessage, DiagramVersion, Role, Session, new_id, utc_now_iso


class SessionStore:
    """
    Ordered sessions, newest first, plus the active session id.

    Every public mutator returns a sentinel (bool / None) for unknown ids
    instead of raising.
    """

    def __init__(self, backend: StorageBackend) -> None:
        self._backend = backend
        self._sessions: list[Session] = self._load_sessions()

        if not self._sessions:
            initial = Session.create(DEFAULT_SESSION_NAME)
            self._sessions = [initial]
            self._active_id = initial.id
            self._persist()
            return

        stored_active = self._read(STORAGE_KEY_ACTIVE_SESSION)
        if stored_active and self.get(stored_active) is not None:
            self._active_id = stored_active
        else:
            self._active_id = self._sessions[0].id
            self._persist()

    # ------------------------------------------------------------------
    # Loading / persistence
    # ------------------------------------------------------------------

    def _read(self, key: str) -> str | None:
        try:
            return self._backend.get(key)
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "STORE_READ_FAILED",
                "level": "ERROR",
                "key": key,
                "error": repr(e),
            })
            return None

    def _load_sessions(self) -> list[Session]:
        raw = self._read(STORAGE_KEY_SESSIONS)
        if not raw:
            return []
        try:
            records = json.loads(raw)
            return [Session.from_dict(r) for r in records]
        except (ValueError, KeyError, TypeError) as e:
            log_event({
                "event_type": "STORE_LOAD_FAILED",
                "level": "ERROR",
                "error": repr(e),
            })
            return []

    def _persist(self) -> None:
        payload = json.dumps([s.to_dict() for s in self._sessions], ensure_ascii=False)
        try:
            self._backend.set(STORAGE_KEY_SESSIONS, payload)
            self._backend.set(STORAGE_KEY_ACTIVE_SESSION, self._active_id)
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "STORE_PERSIST_FAILED",
                "level": "ERROR",
                "error": repr(e),
                "sessions": len(self._sessions),
            })

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def sessions(self) -> list[Session]:
        return list(self._sessions)

    @property
    def active_id(self) -> str:
        return self._active_id

    @property
    def active_session(self) -> Session:
        return self.get(self._active_id) or self._sessions[0]

    def get(self, session_id: str) -> Session | None:
        for session in self._sessions:
            if session.id == session_id:
                return session
        return None

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, name: str | None = None) -> Session:
        """Create a session at the front of the list and make it active."""
        session = Session.create(name)
        self._sessions.insert(0, session)
        self._active_id = session.id
        self._persist()
        log_event({
            "event_type": "SESSION_CREATED",
            "diagram_session_id": session.id,
            "name": session.name,
        })
        return session

    def delete_session(self, session_id: str) -> bool:
        """
        Remove a session.

        Deleting the last one creates a fresh default session. Deleting the
        active one activates the first remaining session.
        """
        if self.get(session_id) is None:
            return False

        self._sessions = [s for s in self._sessions if s.id != session_id]
        if not self._sessions:
            replacement = Session.create(DEFAULT_SESSION_NAME)
            self._sessions = [replacement]
            self._active_id = replacement.id
        elif session_id == self._active_id:
            self._active_id = self._sessions[0].id

        self._persist()
        log_event({
            "event_type": "SESSION_DELETED",
            "diagram_session_id": session_id,
            "active_session_id": self._active_id,
        })
        return True

    def rename_session(self, session_id: str, name: str) -> bool:
        session = self.get(session_id)
        if session is None:
            return False
        session.name = name
        session.touch()
        self._persist()
        return True

    def switch_session(self, session_id: str) -> bool:
        """No-op (False) for an unknown id."""
        if self.get(session_id) is None:
            return False
        self._active_id = session_id
        self._persist()
        return True

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def update_session_diagram(self, session_id: str, bpmn_xml: str) -> bool:
        session = self.get(session_id)
        if session is None:
            return False
        session.bpmn_xml = bpmn_xml
        session.touch()
        self._persist()
        return True

    def update_session_messages(
        self,
        session_id: str,
        messages: Sequence[ChatMessage | dict[str, Any]],
    ) -> bool:
        session = self.get(session_id)
        if session is None:
            return False
        session.messages = [
            m if isinstance(m, ChatMessage) else ChatMessage.from_dict(m)
            for m in messages
        ]
        session.touch()
        self._persist()
        return True

    def append_message(self, session_id: str, role: Role, content: str) -> ChatMessage | None:
        session = self.get(session_id)
        if session is None:
            return None
        message = ChatMessage.create(role, content)
        session.messages.append(message)
        session.touch()
        self._persist()
        return message

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    def create_version(self, session_id: str, label: str | None = None) -> DiagramVersion | None:
        """
        Snapshot the current diagram.

        Returns None for an unknown session or when the diagram equals the
        most recent snapshot.
        """
        session = self.get(session_id)
        if session is None:
            return None
        if session.versions and session.versions[-1].bpmn_xml == session.bpmn_xml:
            log_event({
                "event_type": "VERSION_UNCHANGED",
                "level": "DEBUG",
                "diagram_session_id": session_id,
            })
            return None

        version = DiagramVersion(
            id=new_id(),
            bpmn_xml=session.bpmn_xml,
            timestamp=utc_now_iso(),
            label=label or None,
        )
        session.versions.append(version)
        session.touch()
        self._persist()
        return version

    def restore_version(self, session_id: str, version_id: str) -> bool:
        """Overwrite the current diagram with a snapshot. Versions are untouched."""
        session = self.get(session_id)
        version = session.find_version(version_id) if session is not None else None
        if session is None or version is None:
            return False
        session.bpmn_xml = version.bpmn_xml
        session.touch()
        self._persist()
        return True

    def delete_version(self, session_id: str, version_id: str) -> bool:
        session = self.get(session_id)
        if session is None or session.find_version(version_id) is None:
            return False
        session.versions = [v for v in session.versions if v.id != version_id]
        session.touch()
        self._persist()
        return True

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def get_api_key(self) -> str | None:
        return self._read(STORAGE_KEY_API_KEY) or None

    def set_api_key(self, api_key: str | None) -> None:
        """Store the key; an empty value removes it."""
        try:
            if api_key:
                self._backend.set(STORAGE_KEY_API_KEY, api_key)
            else:
                self._backend.delete(STORAGE_KEY_API_KEY)
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "STORE_PERSIST_FAILED",
                "level": "ERROR",
                "key": STORAGE_KEY_API_KEY,
                "error": repr(e),
            })
