# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
from typing import Any, AsyncIterator, Iterator, Sequence

import pytest
from fastapi.testclient import TestClient

from adapters.live.base import LiveSession
from audio.frames import AudioFrame
from audio.playback import AudioPlaybackScheduler
from config import AppConfig
from orchestrator.messages import FunctionResult
from server.app import create_app
from session.workspace import DiagramWorkspace
from storage.backend import MemoryBackend
from storage.session_store import SessionStore


class FakeSession(LiveSession):
    def __init__(self) -> None:
        self.inbound: asyncio.Queue[Any] = asyncio.Queue()
        self.texts: list[str] = []

    async def open(self) -> None:
        pass

    async def send_audio(self, frame: AudioFrame) -> None:
        pass

    async def send_text(self, text: str) -> None:
        self.texts.append(text)

    async def send_tool_response(self, results: Sequence[FunctionResult]) -> None:
        pass

    async def messages(self) -> AsyncIterator[Any]:
        while True:
            item = await self.inbound.get()
            if item is None:
                return
            yield item

    async def close(self) -> None:
        self.inbound.put_nowait(None)


@pytest.fixture
def sessions() -> list[FakeSession]:
    return []


@pytest.fixture
def workspace(sessions: list[FakeSession]) -> DiagramWorkspace:
    def factory(api_key: str) -> FakeSession:
        session = FakeSession()
        sessions.append(session)
        return session

    return DiagramWorkspace(
        store=SessionStore(MemoryBackend()),
        config=AppConfig(log_level="ERROR"),
        session_factory=factory,
        playback=AudioPlaybackScheduler(open_device=False),
    )


@pytest.fixture
def client(workspace: DiagramWorkspace) -> Iterator[TestClient]:
    with TestClient(create_app(workspace=workspace)) as c:
        yield c


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_session_crud(client: TestClient) -> None:
    listed = client.get("/sessions").json()
    assert len(listed["sessions"]) == 1
    first_id = listed["activeSessionId"]

    created = client.post("/sessions", json={"name": "Orders"}).json()
    assert created["name"] == "Orders"
    assert client.get("/sessions").json()["activeSessionId"] == created["id"]

    renamed = client.patch(f"/sessions/{created['id']}", json={"name": "Invoices"}).json()
    assert renamed["name"] == "Invoices"

    activated = client.post(f"/sessions/{first_id}/activate").json()
    assert activated["activeSessionId"] == first_id

    after_delete = client.delete(f"/sessions/{created['id']}").json()
    assert [s["id"] for s in after_delete["sessions"]] == [first_id]


def test_unknown_ids_are_404(client: TestClient) -> None:
    sid = client.get("/sessions").json()["activeSessionId"]

    assert client.patch("/sessions/nope", json={"name": "x"}).status_code == 404
    assert client.delete("/sessions/nope").status_code == 404
    assert client.post("/sessions/nope/activate").status_code == 404
    assert client.get("/sessions/nope/messages").status_code == 404
    assert client.post(f"/sessions/{sid}/versions/nope/restore").status_code == 404
    assert client.delete(f"/sessions/{sid}/versions/nope").status_code == 404


def test_versions(client: TestClient) -> None:
    sid = client.get("/sessions").json()["activeSessionId"]

    first = client.post(f"/sessions/{sid}/versions", json={"label": "start"}).json()
    assert first["created"] is True
    assert first["version"]["label"] == "start"

    duplicate = client.post(f"/sessions/{sid}/versions", json={}).json()
    assert duplicate == {"created": False, "version": None, "versionCount": 1}

    vid = first["version"]["id"]
    assert client.post(f"/sessions/{sid}/versions/{vid}/restore").json() == {"restored": vid}
    assert len(client.get(f"/sessions/{sid}/versions").json()) == 1
    assert client.delete(f"/sessions/{sid}/versions/{vid}").json() == {"deleted": vid}
    assert client.get(f"/sessions/{sid}/versions").json() == []


def test_diagram_views(client: TestClient) -> None:
    state = client.get("/diagram").json()
    assert state["elements"][0]["id"] == "StartEvent_1"

    xml = client.get("/diagram/xml")
    assert xml.headers["content-type"].startswith("application/xml")
    assert "StartEvent_1" in xml.text


def test_voice_requires_api_key(client: TestClient, sessions: list[FakeSession]) -> None:
    status = client.post("/voice/connect").json()
    assert status["state"] == "error"

    listen = client.post("/voice/listen").json()
    assert listen["ok"] is False
    assert not sessions


def test_voice_text_round_trip(client: TestClient, sessions: list[FakeSession]) -> None:
    assert client.put("/settings/api-key", json={"apiKey": " secret "}).json() == {"configured": True}

    sent = client.post("/voice/text", json={"text": "add a task"}).json()
    assert sent["ok"] is True
    assert sent["state"] == "connected"
    assert sessions[0].texts == ["add a task"]

    sid = client.get("/sessions").json()["activeSessionId"]
    messages = client.get(f"/sessions/{sid}/messages").json()
    assert [(m["role"], m["content"]) for m in messages] == [("user", "add a task")]

    status = client.post("/voice/disconnect").json()
    assert status == {"state": "disconnected", "listening": False, "session_open": False}
    assert client.post("/voice/listen/stop").json()["listening"] is False
