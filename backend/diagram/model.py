"""
In-memory diagram data model.

Pure data containers plus the kind table that maps the tool-facing kind
names onto BPMN element types and default sizes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from spec import EVENT_SIZE, GATEWAY_SIZE, TASK_SIZE


class ElementCategory(str, Enum):
    TASK = "task"
    GATEWAY = "gateway"
    EVENT = "event"


class ElementKind(str, Enum):
    """Element kinds accepted by createElement."""

    TASK = "task"
    USER_TASK = "userTask"
    SERVICE_TASK = "serviceTask"
    SCRIPT_TASK = "scriptTask"
    EXCLUSIVE_GATEWAY = "exclusiveGateway"
    PARALLEL_GATEWAY = "parallelGateway"
    INCLUSIVE_GATEWAY = "inclusiveGateway"
    START_EVENT = "startEvent"
    END_EVENT = "endEvent"
    INTERMEDIATE_EVENT = "intermediateEvent"

    @property
    def bpmn_type(self) -> str:
        return _BPMN_TYPES[self]

    @property
    def category(self) -> ElementCategory:
        return _CATEGORIES[self]

    @property
    def default_size(self) -> tuple[int, int]:
        return _SIZES[self.category]

    @classmethod
    def parse(cls, value: str) -> ElementKind:
        """
        Resolve a kind name.

        Raises:
            ValueError listing the accepted names.
        """
        try:
            return cls(value)
        except ValueError:
            accepted = ", ".join(k.value for k in cls)
            raise ValueError(
                f"Unknown element type: {value!r} (expected one of: {accepted})"
            ) from None

    @classmethod
    def from_bpmn_type(cls, bpmn_type: str) -> ElementKind | None:
        return _KINDS_BY_BPMN_TYPE.get(bpmn_type)


_BPMN_TYPES: dict[ElementKind, str] = {
    ElementKind.TASK: "bpmn:Task",
    ElementKind.USER_TASK: "bpmn:UserTask",
    ElementKind.SERVICE_TASK: "bpmn:ServiceTask",
    ElementKind.SCRIPT_TASK: "bpmn:ScriptTask",
    ElementKind.EXCLUSIVE_GATEWAY: "bpmn:ExclusiveGateway",
    ElementKind.PARALLEL_GATEWAY: "bpmn:ParallelGateway",
    ElementKind.INCLUSIVE_GATEWAY: "bpmn:InclusiveGateway",
    ElementKind.START_EVENT: "bpmn:StartEvent",
    ElementKind.END_EVENT: "bpmn:EndEvent",
    ElementKind.INTERMEDIATE_EVENT: "bpmn:IntermediateCatchEvent",
}

_KINDS_BY_BPMN_TYPE: dict[str, ElementKind] = {v: k for k, v in _BPMN_TYPES.items()}

_CATEGORIES: dict[ElementKind, ElementCategory] = {
    ElementKind.TASK: ElementCategory.TASK,
    ElementKind.USER_TASK: ElementCategory.TASK,
    ElementKind.SERVICE_TASK: ElementCategory.TASK,
    ElementKind.SCRIPT_TASK: ElementCategory.TASK,
    ElementKind.EXCLUSIVE_GATEWAY: ElementCategory.GATEWAY,
    ElementKind.PARALLEL_GATEWAY: ElementCategory.GATEWAY,
    ElementKind.INCLUSIVE_GATEWAY: ElementCategory.GATEWAY,
    ElementKind.START_EVENT: ElementCategory.EVENT,
    ElementKind.END_EVENT: ElementCategory.EVENT,
    ElementKind.INTERMEDIATE_EVENT: ElementCategory.EVENT,
}

_SIZES: dict[ElementCategory, tuple[int, int]] = {
    ElementCategory.TASK: TASK_SIZE,
    ElementCategory.GATEWAY: GATEWAY_SIZE,
    ElementCategory.EVENT: EVENT_SIZE,
}


@dataclass
class DiagramElement:
    """
    One shape on the canvas.

    x / y are the top-left corner of the bounds.
    """
    id: str
    kind: ElementKind
    x: int
    y: int
    width: int
    height: int
    name: str | None = None
    documentation: str | None = None

    @property
    def bpmn_type(self) -> str:
        return self.kind.bpmn_type

    def overlaps(self, x: int, y: int, width: int, height: int) -> bool:
        return (
            x < self.x + self.width
            and self.x < x + width
            and y < self.y + self.height
            and self.y < y + height
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "type": self.bpmn_type,
            "name": self.name,
            "documentation": self.documentation,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }


@dataclass
class DiagramConnection:
    """Sequence flow between two elements."""
    id: str
    source_id: str
    target_id: str
    name: str | None = None

    def touches(self, element_id: str) -> bool:
        return element_id in (self.source_id, self.target_id)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "type": "bpmn:SequenceFlow",
            "name": self.name,
            "sourceId": self.source_id,
            "targetId": self.target_id,
        }
