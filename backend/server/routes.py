"""
Route registration for the control panel API.

Responsibilities:
- Define HTTP endpoints for sessions, versions, the live diagram,
  credentials, and the voice session
- Pull the workspace from app.state
- Map unknown ids to 404
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException, Request, Response
from pydantic import BaseModel

from session.workspace import DiagramWorkspace
from storage.models import Session


# ------------------------------------------------------------------
# Request bodies
# ------------------------------------------------------------------

class CreateSessionBody(BaseModel):
    name: str | None = None


class RenameSessionBody(BaseModel):
    name: str


class CreateVersionBody(BaseModel):
    label: str | None = None


class ApiKeyBody(BaseModel):
    apiKey: str | None = None


class TextMessageBody(BaseModel):
    text: str


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _workspace(request: Request) -> DiagramWorkspace:
    return request.app.state.workspace


def _session_or_404(ws: DiagramWorkspace, session_id: str) -> Session:
    session = ws.store.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return session


def _sessions_payload(ws: DiagramWorkspace) -> dict[str, Any]:
    return {
        "activeSessionId": ws.active.get(),
        "sessions": [s.summary() for s in ws.store.sessions],
    }


def register_routes(app: FastAPI) -> None:  # pylint: disable=too-many-locals,too-many-statements
    """Register all routes on the FastAPI app."""

    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @app.get("/sessions")
    async def list_sessions(request: Request) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return _sessions_payload(_workspace(request))

    @app.post("/sessions")
    async def create_session(request: Request, body: CreateSessionBody) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        ws = _workspace(request)
        session = ws.create_session(body.name)
        return session.summary()

    @app.patch("/sessions/{session_id}")
    async def rename_session(request: Request, session_id: str, body: RenameSessionBody) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        ws = _workspace(request)
        session = _session_or_404(ws, session_id)
        ws.rename_session(session_id, body.name)
        return session.summary()

    @app.delete("/sessions/{session_id}")
    async def delete_session(request: Request, session_id: str) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        ws = _workspace(request)
        _session_or_404(ws, session_id)
        ws.delete_session(session_id)
        return _sessions_payload(ws)

    @app.post("/sessions/{session_id}/activate")
    async def activate_session(request: Request, session_id: str) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        ws = _workspace(request)
        _session_or_404(ws, session_id)
        ws.switch_session(session_id)
        return _sessions_payload(ws)

    @app.get("/sessions/{session_id}/messages")
    async def list_messages(request: Request, session_id: str) -> list[dict[str, Any]]: # pyright: ignore[reportUnusedFunction]
        session = _session_or_404(_workspace(request), session_id)
        return [m.to_dict() for m in session.messages]

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    @app.get("/sessions/{session_id}/versions")
    async def list_versions(request: Request, session_id: str) -> list[dict[str, Any]]: # pyright: ignore[reportUnusedFunction]
        session = _session_or_404(_workspace(request), session_id)
        return [
            {"id": v.id, "timestamp": v.timestamp, "label": v.label}
            for v in session.versions
        ]

    @app.post("/sessions/{session_id}/versions")
    async def create_version(request: Request, session_id: str, body: CreateVersionBody) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        ws = _workspace(request)
        session = _session_or_404(ws, session_id)
        version = ws.create_version(session_id, body.label)
        return {
            "created": version is not None,
            "version": (
                {"id": version.id, "timestamp": version.timestamp, "label": version.label}
                if version is not None else None
            ),
            "versionCount": len(session.versions),
        }

    @app.post("/sessions/{session_id}/versions/{version_id}/restore")
    async def restore_version(request: Request, session_id: str, version_id: str) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        ws = _workspace(request)
        _session_or_404(ws, session_id)
        if not ws.restore_version(session_id, version_id):
            raise HTTPException(status_code=404, detail=f"Version {version_id} not found")
        return {"restored": version_id}

    @app.delete("/sessions/{session_id}/versions/{version_id}")
    async def delete_version(request: Request, session_id: str, version_id: str) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        ws = _workspace(request)
        _session_or_404(ws, session_id)
        if not ws.delete_version(session_id, version_id):
            raise HTTPException(status_code=404, detail=f"Version {version_id} not found")
        return {"deleted": version_id}

    # ------------------------------------------------------------------
    # Live diagram
    # ------------------------------------------------------------------

    @app.get("/diagram")
    async def diagram_state(request: Request) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return _workspace(request).diagram_state()

    @app.get("/diagram/xml")
    async def diagram_xml(request: Request) -> Response: # pyright: ignore[reportUnusedFunction]
        return Response(content=_workspace(request).export_xml(), media_type="application/xml")

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    @app.put("/settings/api-key")
    async def set_api_key(request: Request, body: ApiKeyBody) -> dict[str, bool]: # pyright: ignore[reportUnusedFunction]
        ws = _workspace(request)
        ws.set_api_key((body.apiKey or "").strip() or None)
        return {"configured": ws.get_api_key() is not None}

    # ------------------------------------------------------------------
    # Voice
    # ------------------------------------------------------------------

    @app.get("/voice/status")
    async def voice_status(request: Request) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return _workspace(request).voice.status()

    @app.post("/voice/connect")
    async def voice_connect(request: Request) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        voice = _workspace(request).voice
        await voice.connect()
        return voice.status()

    @app.post("/voice/disconnect")
    async def voice_disconnect(request: Request) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        voice = _workspace(request).voice
        await voice.disconnect()
        return voice.status()

    @app.post("/voice/listen")
    async def voice_listen(request: Request) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        voice = _workspace(request).voice
        ok = await voice.start_listening()
        return {"ok": ok, **voice.status()}

    @app.post("/voice/listen/stop")
    async def voice_listen_stop(request: Request) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        voice = _workspace(request).voice
        voice.stop_listening()
        return voice.status()

    @app.post("/voice/text")
    async def voice_text(request: Request, body: TextMessageBody) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        voice = _workspace(request).voice
        ok = await voice.send_text_message(body.text)
        return {"ok": ok, **voice.status()}
