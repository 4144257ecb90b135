# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from diagram.modeler import DiagramModeler
from services.diagram_operations import DiagramMutationAPI


def _api() -> DiagramMutationAPI:
    return DiagramMutationAPI(DiagramModeler())


def test_initial_diagram_has_start_event() -> None:
    api = _api()
    state = api.get_diagram_state()

    assert [e["id"] for e in state["elements"]] == ["StartEvent_1"]
    assert state["elements"][0]["type"] == "bpmn:StartEvent"
    assert state["connections"] == []


def test_create_element_uses_kind_size_and_prefix() -> None:
    api = _api()

    task_id = api.create_element("userTask", "Review")
    gw_id = api.create_element("exclusiveGateway")
    end_id = api.create_element("endEvent", x=900, y=400)

    task = api.modeler.get_element(task_id)
    gateway = api.modeler.get_element(gw_id)
    end = api.modeler.get_element(end_id)
    assert task is not None and gateway is not None and end is not None

    assert task_id.startswith("Activity_")
    assert gw_id.startswith("Gateway_")
    assert end_id.startswith("Event_")
    assert (task.width, task.height) == (100, 80)
    assert (gateway.width, gateway.height) == (50, 50)
    assert (end.x, end.y, end.width) == (900, 400, 36)
    assert task.name == "Review"
    assert task.bpmn_type == "bpmn:UserTask"


def test_auto_layout_skips_occupied_slots() -> None:
    api = _api()
    api.create_element("task", "Blocker", x=450, y=200)

    first = api.modeler.get_element(api.create_element("task", "A"))
    second = api.modeler.get_element(api.create_element("task", "B"))
    assert first is not None and second is not None

    assert (first.x, first.y) == (300, 200)
    assert (second.x, second.y) == (600, 200)

    boxes = [(e.x, e.y, e.width, e.height) for e in api.modeler.elements]
    for i, a in enumerate(api.modeler.elements):
        for j, b in enumerate(boxes):
            if i != j:
                assert not a.overlaps(*b)


def test_single_coordinate_falls_back_to_auto_layout() -> None:
    api = _api()
    el = api.modeler.get_element(api.create_element("task", x=999))
    assert el is not None
    assert (el.x, el.y) == (300, 200)


def test_unknown_kind_raises() -> None:
    with pytest.raises(ValueError, match="Unknown element type"):
        _api().create_element("subProcess")


def test_update_elements_reports_found_and_missing() -> None:
    api = _api()
    task_id = api.create_element("task", "Old")

    outcome = api.update_elements([
        {"elementId": task_id, "name": "New", "documentation": "notes"},
        {"elementId": "Nope_1", "name": "X"},
    ])

    assert outcome.updated_ids == [task_id]
    assert outcome.not_found_ids == ["Nope_1"]
    task = api.modeler.get_element(task_id)
    assert task is not None
    assert task.name == "New"
    assert task.documentation == "notes"


def test_connect_requires_both_endpoints() -> None:
    api = _api()
    task_id = api.create_element("task")

    assert api.connect_elements("StartEvent_1", "Missing") is None

    flow_id = api.connect_elements("StartEvent_1", task_id, "go")
    assert flow_id is not None and flow_id.startswith("Flow_")
    conn = api.modeler.get_connection(flow_id)
    assert conn is not None
    assert (conn.source_id, conn.target_id, conn.name) == ("StartEvent_1", task_id, "go")


def test_disconnect_is_directed() -> None:
    api = _api()
    task_id = api.create_element("task")
    api.connect_elements("StartEvent_1", task_id)

    assert not api.disconnect_elements(task_id, "StartEvent_1")
    assert api.disconnect_elements("StartEvent_1", task_id)
    assert api.modeler.connections == []


def test_delete_element_cascades_to_connections() -> None:
    api = _api()
    a = api.create_element("task", "A")
    b = api.create_element("task", "B")
    api.connect_elements("StartEvent_1", a)
    keep = api.connect_elements("StartEvent_1", b)
    api.connect_elements(a, b)

    assert api.delete_element(a)

    ids = {e.id for e in api.modeler.elements}
    for conn in api.modeler.connections:
        assert conn.source_id in ids and conn.target_id in ids
    assert [c.id for c in api.modeler.connections] == [keep]


def test_delete_accepts_connection_id_and_reports_missing() -> None:
    api = _api()
    task_id = api.create_element("task")
    flow_id = api.connect_elements("StartEvent_1", task_id)
    assert flow_id is not None

    assert api.delete_element(flow_id)
    assert api.modeler.get_element(task_id) is not None
    assert not api.delete_element(flow_id)


def test_find_element_by_name_is_case_insensitive_last_match() -> None:
    api = _api()
    api.create_element("task", "Approve Invoice")
    second = api.create_element("task", "approve order")

    assert api.find_element_by_name("APPROVE") == second
    assert api.find_element_by_name("invoice") is not None
    assert api.find_element_by_name("ship") is None


def test_get_last_created_element() -> None:
    api = _api()
    assert api.get_last_created_element() == "StartEvent_1"

    task_id = api.create_element("task")
    assert api.get_last_created_element() == task_id


def test_every_mutation_notifies_listeners() -> None:
    modeler = DiagramModeler()
    api = DiagramMutationAPI(modeler)
    changes: list[int] = []
    unsubscribe = modeler.add_change_listener(lambda: changes.append(1))

    task_id = api.create_element("task")
    api.update_elements([{"elementId": task_id, "name": "T"}])
    api.connect_elements("StartEvent_1", task_id)
    api.delete_element(task_id)
    assert len(changes) == 4

    unsubscribe()
    api.create_element("task")
    assert len(changes) == 4


def test_failing_listener_does_not_block_mutation() -> None:
    modeler = DiagramModeler()

    def broken() -> None:
        raise RuntimeError("listener")

    modeler.add_change_listener(broken)
    task_id = DiagramMutationAPI(modeler).create_element("task")

    assert modeler.get_element(task_id) is not None
