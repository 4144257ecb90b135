"""
In-process diagram engine.

Responsibilities:
- Own the element and connection registries (registration order preserved)
- Generate ids unique within the diagram
- Notify change listeners after every mutation
- Import/export BPMN XML

Non-responsibilities:
- No auto-layout (services.diagram_operations)
- No persistence (storage)

Importing a document replaces the registries and does NOT notify
listeners: loading a stored diagram is not an edit.
"""

from __future__ import annotations

import uuid
from typing import Callable

from diagram.bpmn_xml import INITIAL_DIAGRAM, parse_bpmn, serialize_bpmn
from diagram.model import (
    DiagramConnection,
    DiagramElement,
    ElementCategory,
    ElementKind,
)
from observability.logger import log_event
from spec import ELEMENT_ID_SUFFIX_LEN


ChangeListener = Callable[[], None]

_ID_PREFIXES: dict[ElementCategory, str] = {
    ElementCategory.TASK: "Activity",
    ElementCategory.GATEWAY: "Gateway",
    ElementCategory.EVENT: "Event",
}
_FLOW_PREFIX = "Flow"


class DiagramModeler:
    """
    Mutable diagram owned by the workspace.

    All mutation goes through this class so listeners see every change.
    """

    def __init__(self, xml_text: str | None = None) -> None:
        self.definitions_id: str = "Definitions_1"
        self.process_id: str = "Process_1"
        self._elements: dict[str, DiagramElement] = {}
        self._connections: dict[str, DiagramConnection] = {}
        self._listeners: list[ChangeListener] = []

        self.import_xml(xml_text or INITIAL_DIAGRAM)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_change_listener(self, listener: ChangeListener) -> Callable[[], None]:
        """Subscribe to mutations. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, change: str) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:  # pylint: disable=broad-exception-caught
                log_event({
                    "event_type": "MODELER_LISTENER_FAILED",
                    "level": "ERROR",
                    "change": change,
                    "error": repr(e),
                })

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def elements(self) -> list[DiagramElement]:
        """Shapes in registration order."""
        return list(self._elements.values())

    @property
    def connections(self) -> list[DiagramConnection]:
        return list(self._connections.values())

    def get_element(self, element_id: str) -> DiagramElement | None:
        return self._elements.get(element_id)

    def get_connection(self, connection_id: str) -> DiagramConnection | None:
        return self._connections.get(connection_id)

    def _new_id(self, prefix: str) -> str:
        while True:
            candidate = f"{prefix}_{uuid.uuid4().hex[:ELEMENT_ID_SUFFIX_LEN]}"
            if candidate not in self._elements and candidate not in self._connections:
                return candidate

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_element(
        self,
        kind: ElementKind,
        *,
        x: int,
        y: int,
        name: str | None = None,
    ) -> DiagramElement:
        width, height = kind.default_size
        element = DiagramElement(
            id=self._new_id(_ID_PREFIXES[kind.category]),
            kind=kind,
            x=x,
            y=y,
            width=width,
            height=height,
            name=name,
        )
        self._elements[element.id] = element
        self._notify("element.added")
        return element

    def update_element(
        self,
        element_id: str,
        *,
        name: str | None = None,
        x: int | None = None,
        y: int | None = None,
        documentation: str | None = None,
    ) -> bool:
        """Apply the given fields. False if the element does not exist."""
        element = self._elements.get(element_id)
        if element is None:
            return False
        if name is not None:
            element.name = name
        if x is not None:
            element.x = x
        if y is not None:
            element.y = y
        if documentation is not None:
            element.documentation = documentation
        self._notify("element.changed")
        return True

    def add_connection(
        self,
        source_id: str,
        target_id: str,
        *,
        name: str | None = None,
    ) -> DiagramConnection | None:
        """None if either endpoint is missing."""
        if source_id not in self._elements or target_id not in self._elements:
            return None
        connection = DiagramConnection(
            id=self._new_id(_FLOW_PREFIX),
            source_id=source_id,
            target_id=target_id,
            name=name,
        )
        self._connections[connection.id] = connection
        self._notify("connection.added")
        return connection

    def remove_connections(self, connection_ids: list[str]) -> int:
        """Remove the given connections in one change. Returns how many existed."""
        removed = 0
        for connection_id in connection_ids:
            if self._connections.pop(connection_id, None) is not None:
                removed += 1
        if removed:
            self._notify("connection.removed")
        return removed

    def remove_element(self, element_id: str) -> bool:
        """Remove a shape and every connection touching it."""
        if element_id not in self._elements:
            return False
        for conn in self.connections:
            if conn.touches(element_id):
                del self._connections[conn.id]
        del self._elements[element_id]
        self._notify("element.removed")
        return True

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def import_xml(self, xml_text: str) -> None:
        """
        Replace the whole diagram. Listeners are not notified.

        Raises:
            DiagramImportError; the current diagram is left untouched.
        """
        parsed = parse_bpmn(xml_text)
        self.definitions_id = parsed.definitions_id
        self.process_id = parsed.process_id
        self._elements = {e.id: e for e in parsed.elements}
        self._connections = {c.id: c for c in parsed.connections}

    def export_xml(self) -> str:
        return serialize_bpmn(
            definitions_id=self.definitions_id,
            process_id=self.process_id,
            elements=self.elements,
            connections=self.connections,
        )
