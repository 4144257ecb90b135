# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
from typing import Any

import pytest

from audio.playback import AudioPlaybackScheduler
from config import AppConfig
from orchestrator.messages import FunctionCall
from session import workspace as workspace_mod
from services.tool_dispatcher import NOT_INITIALIZED_ERROR
from session.workspace import DiagramWorkspace
from storage.backend import MemoryBackend
from storage.session_store import SessionStore


def _workspace(backend: MemoryBackend | None = None, **config: Any) -> DiagramWorkspace:
    return DiagramWorkspace(
        store=SessionStore(backend or MemoryBackend()),
        config=AppConfig(**config),
        playback=AudioPlaybackScheduler(open_device=False),
    )


def test_edits_are_saved_to_the_active_session() -> None:
    ws = _workspace()

    task_id = ws.api.create_element("task", "Review")

    assert task_id in ws.active_session.bpmn_xml
    assert ws.diagram_state()["sessionId"] == ws.active.get()


def test_tool_edits_saved_after_flush() -> None:
    ws = _workspace()

    result = asyncio.run(ws.dispatcher.dispatch(
        FunctionCall("c1", "createElement", {"type": "task", "name": "Ship"}),
    ))
    ws.autosaver.flush()

    assert result.response["elementId"] in ws.active_session.bpmn_xml


def test_switching_sessions_swaps_the_live_diagram() -> None:
    ws = _workspace()
    first_id = ws.active.get()
    task_id = ws.api.create_element("task", "Only in first")

    second = ws.create_session("Second")
    assert ws.active.get() == second.id
    assert ws.modeler.get_element(task_id) is None

    assert ws.switch_session(first_id)
    assert ws.modeler.get_element(task_id) is not None
    assert not ws.switch_session("nope")


def test_deleting_active_session_loads_the_next_one() -> None:
    ws = _workspace()
    first_id = ws.active.get()
    second = ws.create_session("Second")
    ws.api.create_element("task")

    assert ws.delete_session(second.id)

    assert ws.active.get() == first_id
    assert [e.id for e in ws.modeler.elements] == ["StartEvent_1"]


def test_restore_version_reloads_active_diagram() -> None:
    ws = _workspace()
    sid = ws.active.get()
    version = ws.create_version(sid, "empty")
    assert version is not None
    task_id = ws.api.create_element("task")

    assert ws.restore_version(sid, version.id)

    assert ws.modeler.get_element(task_id) is None
    assert len(ws.active_session.versions) == 1


def test_create_version_captures_unsaved_edits() -> None:
    ws = _workspace()
    sid = ws.active.get()

    async def scenario() -> None:
        ws.api.create_element("task", "Pending")
        assert ws.autosaver.pending

    asyncio.run(scenario())
    version = ws.create_version(sid)

    assert version is not None
    assert "Pending" in version.bpmn_xml


def test_messages_and_title_go_to_active_session() -> None:
    ws = _workspace()

    ws.record_message("user", "add a task")
    result = asyncio.run(ws.dispatcher.dispatch(
        FunctionCall("c1", "updateDiagramTitle", {"title": "Orders"}),
    ))

    assert result.success
    assert ws.active_session.name == "Orders"
    assert [m.content for m in ws.active_session.messages] == ["add a task"]


def test_voice_transcripts_are_recorded() -> None:
    ws = _workspace()

    asyncio.run(ws.voice.handle_server_message({"serverContent": {
        "inputTranscription": {"text": "hello"},
        "outputTranscription": {"text": "hi there"},
        "turnComplete": True,
    }}))

    assert [(m.role, m.content) for m in ws.active_session.messages] == [
        ("user", "hello"),
        ("assistant", "hi there"),
    ]


def test_broken_stored_diagram_falls_back_to_initial(monkeypatch: pytest.MonkeyPatch) -> None:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(workspace_mod, "log_event", emitted.append)
    backend = MemoryBackend()
    store = SessionStore(backend)
    store.update_session_diagram(store.active_id, "<not-bpmn/>")

    ws = _workspace(backend)

    assert [e.id for e in ws.modeler.elements] == ["StartEvent_1"]
    assert emitted[0]["event_type"] == "DIAGRAM_IMPORT_FAILED"


def test_api_key_override_and_fallback() -> None:
    ws = _workspace(gemini_api_key="from-env")
    assert ws.get_api_key() == "from-env"

    ws.set_api_key("typed")
    assert ws.get_api_key() == "typed"
    assert ws.store.get_api_key() == "typed"

    ws.set_api_key(None)
    assert ws.get_api_key() == "from-env"


def test_tool_calls_fail_fast_after_shutdown() -> None:
    ws = _workspace()
    call = FunctionCall("c1", "createElement", {"type": "task"})

    async def scenario() -> tuple[Any, Any]:
        before = await ws.dispatcher.dispatch(call)
        await ws.shutdown()
        after = await ws.dispatcher.dispatch(call)
        return before, after

    before, after = asyncio.run(scenario())

    assert before.success
    assert after.response == {"success": False, "error": NOT_INITIALIZED_ERROR}
