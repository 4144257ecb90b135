"""
BPMN 2.0 XML import/export.

Responsibilities:
- Parse bpmn2:definitions into DiagramElement / DiagramConnection lists
- Serialize the in-memory model back to BPMN XML with DI shapes and edges

Export is deterministic: the same model always yields the same string, so
snapshot deduplication can compare serializations directly.

Only the element types in diagram.model are understood. Other flow nodes
in an imported document are skipped, and sequence flows whose endpoints
were skipped are dropped with them. Both are logged as one warning.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

from diagram.model import DiagramConnection, DiagramElement, ElementKind
from observability.logger import log_event


BPMN_NS = "http://www.omg.org/spec/BPMN/20100524/MODEL"
BPMNDI_NS = "http://www.omg.org/spec/BPMN/20100524/DI"
DC_NS = "http://www.omg.org/spec/DD/20100524/DC"
DI_NS = "http://www.omg.org/spec/DD/20100524/DI"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"

TARGET_NAMESPACE = "http://bpmn.io/schema/bpmn"
EXPORTER = "BPMN Voice Bot"
EXPORTER_VERSION = "1.0.0"

for _prefix, _uri in (
    ("bpmn2", BPMN_NS),
    ("bpmndi", BPMNDI_NS),
    ("dc", DC_NS),
    ("di", DI_NS),
    ("xsi", XSI_NS),
):
    ET.register_namespace(_prefix, _uri)


INITIAL_DIAGRAM = """<?xml version="1.0" encoding="UTF-8"?>
<bpmn2:definitions xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" xmlns:bpmn2="http://www.omg.org/spec/BPMN/20100524/MODEL" xmlns:bpmndi="http://www.omg.org/spec/BPMN/20100524/DI" xmlns:dc="http://www.omg.org/spec/DD/20100524/DC" id="Definitions_1" targetNamespace="http://bpmn.io/schema/bpmn" exporter="BPMN Voice Bot" exporterVersion="1.0.0">
  <bpmn2:process id="Process_1" isExecutable="false">
    <bpmn2:startEvent id="StartEvent_1" name="Start" />
  </bpmn2:process>
  <bpmndi:BPMNDiagram id="BPMNDiagram_1">
    <bpmndi:BPMNPlane id="BPMNPlane_1" bpmnElement="Process_1">
      <bpmndi:BPMNShape id="_BPMNShape_StartEvent_2" bpmnElement="StartEvent_1">
        <dc:Bounds x="182" y="182" width="36" height="36" />
        <bpmndi:BPMNLabel>
          <dc:Bounds x="188" y="225" width="24" height="14" />
        </bpmndi:BPMNLabel>
      </bpmndi:BPMNShape>
    </bpmndi:BPMNPlane>
  </bpmndi:BPMNDiagram>
</bpmn2:definitions>"""


class DiagramImportError(ValueError):
    """Raised when a document is not importable BPMN XML."""


@dataclass
class ParsedDiagram:
    definitions_id: str = "Definitions_1"
    process_id: str = "Process_1"
    elements: list[DiagramElement] = field(default_factory=list)
    connections: list[DiagramConnection] = field(default_factory=list)


def _q(ns: str, local: str) -> str:
    return f"{{{ns}}}{local}"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _tag_for(bpmn_type: str) -> str:
    # "bpmn:UserTask" -> "userTask"
    local = bpmn_type.split(":", 1)[1]
    return local[0].lower() + local[1:]


def _type_for(tag: str) -> str:
    return f"bpmn:{tag[0].upper()}{tag[1:]}"


def _int_attr(node: ET.Element, name: str) -> int:
    try:
        return int(round(float(node.get(name, "0"))))
    except ValueError as e:
        raise DiagramImportError(f"bad {name} on bounds: {node.get(name)!r}") from e


# ----------------------------------------------------------------------
# Import
# ----------------------------------------------------------------------

def parse_bpmn(xml_text: str) -> ParsedDiagram:
    """
    Parse BPMN XML.

    Raises:
        DiagramImportError on malformed XML or a document without a process.
    """
    try:
        root = ET.fromstring(xml_text.strip())
    except ET.ParseError as e:
        raise DiagramImportError(f"malformed BPMN XML: {e}") from e

    if root.tag != _q(BPMN_NS, "definitions"):
        raise DiagramImportError(f"unexpected root element {_local_name(root.tag)!r}")

    process = root.find(_q(BPMN_NS, "process"))
    if process is None:
        raise DiagramImportError("document has no bpmn2:process")

    bounds: dict[str, tuple[int, int, int, int]] = {}
    for shape in root.iter(_q(BPMNDI_NS, "BPMNShape")):
        ref = shape.get("bpmnElement")
        box = shape.find(_q(DC_NS, "Bounds"))
        if ref and box is not None:
            bounds[ref] = (
                _int_attr(box, "x"),
                _int_attr(box, "y"),
                _int_attr(box, "width"),
                _int_attr(box, "height"),
            )

    parsed = ParsedDiagram(
        definitions_id=root.get("id", "Definitions_1"),
        process_id=process.get("id", "Process_1"),
    )

    flows: list[ET.Element] = []
    skipped: list[str] = []
    for node in process:
        tag = _local_name(node.tag)
        if tag == "sequenceFlow":
            flows.append(node)
            continue

        kind = ElementKind.from_bpmn_type(_type_for(tag))
        element_id = node.get("id")
        if kind is None or not element_id:
            skipped.append(f"{tag}:{element_id}" if element_id else tag)
            continue

        width, height = kind.default_size
        x, y, width, height = bounds.get(element_id, (0, 0, width, height))
        doc = node.find(_q(BPMN_NS, "documentation"))
        parsed.elements.append(DiagramElement(
            id=element_id,
            kind=kind,
            x=x,
            y=y,
            width=width,
            height=height,
            name=node.get("name"),
            documentation=doc.text if doc is not None and doc.text else None,
        ))

    known = {e.id for e in parsed.elements}
    for node in flows:
        flow_id = node.get("id")
        source = node.get("sourceRef")
        target = node.get("targetRef")
        if not flow_id or source not in known or target not in known:
            skipped.append(f"sequenceFlow:{flow_id}")
            continue
        parsed.connections.append(DiagramConnection(
            id=flow_id,
            source_id=source,
            target_id=target,
            name=node.get("name"),
        ))

    if skipped:
        log_event({
            "event_type": "BPMN_IMPORT_SKIPPED_NODES",
            "level": "WARNING",
            "skipped": skipped,
        })

    return parsed


# ----------------------------------------------------------------------
# Export
# ----------------------------------------------------------------------

def _waypoints(
    source: DiagramElement,
    target: DiagramElement,
) -> list[tuple[int, int]]:
    # Right-middle of source to left-middle of target
    return [
        (source.x + source.width, source.y + source.height // 2),
        (target.x, target.y + target.height // 2),
    ]


def serialize_bpmn(
    *,
    definitions_id: str,
    process_id: str,
    elements: list[DiagramElement],
    connections: list[DiagramConnection],
) -> str:
    """Serialize the model to an indented BPMN XML document."""
    root = ET.Element(_q(BPMN_NS, "definitions"), {
        "id": definitions_id,
        "targetNamespace": TARGET_NAMESPACE,
        "exporter": EXPORTER,
        "exporterVersion": EXPORTER_VERSION,
    })
    process = ET.SubElement(root, _q(BPMN_NS, "process"), {
        "id": process_id,
        "isExecutable": "false",
    })

    for el in elements:
        attrs = {"id": el.id}
        if el.name:
            attrs["name"] = el.name
        node = ET.SubElement(process, _q(BPMN_NS, _tag_for(el.bpmn_type)), attrs)
        if el.documentation:
            doc = ET.SubElement(node, _q(BPMN_NS, "documentation"))
            doc.text = el.documentation

    for conn in connections:
        attrs = {"id": conn.id}
        if conn.name:
            attrs["name"] = conn.name
        attrs["sourceRef"] = conn.source_id
        attrs["targetRef"] = conn.target_id
        ET.SubElement(process, _q(BPMN_NS, "sequenceFlow"), attrs)

    diagram = ET.SubElement(root, _q(BPMNDI_NS, "BPMNDiagram"), {"id": "BPMNDiagram_1"})
    plane = ET.SubElement(diagram, _q(BPMNDI_NS, "BPMNPlane"), {
        "id": "BPMNPlane_1",
        "bpmnElement": process_id,
    })

    by_id = {el.id: el for el in elements}
    for el in elements:
        shape = ET.SubElement(plane, _q(BPMNDI_NS, "BPMNShape"), {
            "id": f"{el.id}_di",
            "bpmnElement": el.id,
        })
        ET.SubElement(shape, _q(DC_NS, "Bounds"), {
            "x": str(el.x),
            "y": str(el.y),
            "width": str(el.width),
            "height": str(el.height),
        })

    for conn in connections:
        source = by_id.get(conn.source_id)
        target = by_id.get(conn.target_id)
        if source is None or target is None:
            continue
        edge = ET.SubElement(plane, _q(BPMNDI_NS, "BPMNEdge"), {
            "id": f"{conn.id}_di",
            "bpmnElement": conn.id,
        })
        for x, y in _waypoints(source, target):
            ET.SubElement(edge, _q(DI_NS, "waypoint"), {"x": str(x), "y": str(y)})

    ET.indent(root, space="  ")
    body = ET.tostring(root, encoding="unicode")
    return f'<?xml version="1.0" encoding="UTF-8"?>\n{body}\n'
