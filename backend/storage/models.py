"""
Persisted session records.

Pure data containers with dict conversion. Keys in the serialized form
are camelCase and stable: they are what the persistence backend stores.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Mapping

from diagram.bpmn_xml import INITIAL_DIAGRAM
from spec import SESSION_NAME_FORMAT


Role = Literal["user", "assistant"]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_id() -> str:
    return str(uuid.uuid4())


def default_session_name(now: datetime | None = None) -> str:
    """e.g. "Diagram Mar 04, 09:15 AM" in local time."""
    return (now or datetime.now()).strftime(SESSION_NAME_FORMAT)


@dataclass(frozen=True)
class ChatMessage:
    """One finalized user or assistant utterance."""
    id: str
    role: Role
    content: str
    timestamp: str

    @staticmethod
    def create(role: Role, content: str) -> ChatMessage:
        return ChatMessage(id=new_id(), role=role, content=content, timestamp=utc_now_iso())

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> ChatMessage:
        role = data.get("role")
        return ChatMessage(
            id=str(data.get("id") or new_id()),
            role="assistant" if role == "assistant" else "user",
            content=str(data.get("content", "")),
            timestamp=str(data.get("timestamp") or utc_now_iso()),
        )


@dataclass(frozen=True)
class DiagramVersion:
    """Immutable snapshot of a diagram serialization."""
    id: str
    bpmn_xml: str
    timestamp: str
    label: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "bpmnXml": self.bpmn_xml,
            "timestamp": self.timestamp,
        }
        if self.label is not None:
            data["label"] = self.label
        return data

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> DiagramVersion:
        return DiagramVersion(
            id=str(data["id"]),
            bpmn_xml=str(data["bpmnXml"]),
            timestamp=str(data.get("timestamp") or utc_now_iso()),
            label=data.get("label"),
        )


@dataclass
class Session:
    """
    A named diagram with its chat history and snapshots.

    versions are ordered oldest first; the last entry is the most recent.
    """
    id: str
    name: str
    bpmn_xml: str
    messages: list[ChatMessage] = field(default_factory=list)
    versions: list[DiagramVersion] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    @staticmethod
    def create(name: str | None = None) -> Session:
        now = utc_now_iso()
        return Session(
            id=new_id(),
            name=name or default_session_name(),
            bpmn_xml=INITIAL_DIAGRAM,
            created_at=now,
            updated_at=now,
        )

    def touch(self) -> None:
        self.updated_at = utc_now_iso()

    def find_version(self, version_id: str) -> DiagramVersion | None:
        for version in self.versions:
            if version.id == version_id:
                return version
        return None

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "messageCount": len(self.messages),
            "versionCount": len(self.versions),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "bpmnXml": self.bpmn_xml,
            "messages": [m.to_dict() for m in self.messages],
            "versions": [v.to_dict() for v in self.versions],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> Session:
        return Session(
            id=str(data["id"]),
            name=str(data.get("name") or default_session_name()),
            bpmn_xml=str(data.get("bpmnXml") or INITIAL_DIAGRAM),
            messages=[ChatMessage.from_dict(m) for m in data.get("messages") or []],
            versions=[DiagramVersion.from_dict(v) for v in data.get("versions") or []],
            created_at=str(data.get("createdAt") or utc_now_iso()),
            updated_at=str(data.get("updatedAt") or utc_now_iso()),
        )
