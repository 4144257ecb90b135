"""
Diagram mutation command surface.

Responsibilities:
- Create/update/connect/disconnect/delete/query diagram elements
- Auto-layout elements created without coordinates

Non-responsibilities:
- No tool-call packaging (services.tool_dispatcher)
- No persistence

Not-found cases are reported as False / None / notFoundIds, never raised.
An unknown element kind raises ValueError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from diagram.model import ElementKind
from diagram.modeler import DiagramModeler
from spec import (
    LAYOUT_COLUMNS,
    LAYOUT_ORIGIN_X,
    LAYOUT_ORIGIN_Y,
    LAYOUT_SPACING_X,
    LAYOUT_SPACING_Y,
)


@dataclass
class UpdateOutcome:
    updated_ids: list[str] = field(default_factory=list)
    not_found_ids: list[str] = field(default_factory=list)


def _coord(value: Any) -> int | None:
    if value is None:
        return None
    return int(round(float(value)))


class DiagramMutationAPI:
    """
    Operations the voice assistant can perform on the live diagram.

    The auto-layout counter belongs to this instance. The workspace calls
    reset_layout() whenever another session's diagram is loaded.
    """

    def __init__(self, modeler: DiagramModeler) -> None:
        self._modeler = modeler
        self._layout_index: int = 0

    @property
    def modeler(self) -> DiagramModeler:
        return self._modeler

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def reset_layout(self) -> None:
        self._layout_index = 0

    def _next_position(self, width: int, height: int) -> tuple[int, int]:
        # Row-major grid; slots covered by an existing shape are skipped
        elements = self._modeler.elements
        while True:
            row, col = divmod(self._layout_index, LAYOUT_COLUMNS)
            self._layout_index += 1
            x = LAYOUT_ORIGIN_X + col * LAYOUT_SPACING_X
            y = LAYOUT_ORIGIN_Y + row * LAYOUT_SPACING_Y
            if not any(el.overlaps(x, y, width, height) for el in elements):
                return x, y

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_element(
        self,
        kind: str,
        name: str | None = None,
        x: float | None = None,
        y: float | None = None,
    ) -> str:
        """
        Create a shape and return its id.

        Explicit coordinates are used only when both are given.
        """
        element_kind = ElementKind.parse(kind)
        px, py = _coord(x), _coord(y)
        if px is None or py is None:
            px, py = self._next_position(*element_kind.default_size)
        element = self._modeler.add_element(element_kind, x=px, y=py, name=name or None)
        return element.id

    def update_elements(self, updates: Sequence[Mapping[str, Any]]) -> UpdateOutcome:
        outcome = UpdateOutcome()
        for update in updates:
            element_id = str(update.get("elementId", ""))
            ok = self._modeler.update_element(
                element_id,
                name=update.get("name"),
                x=_coord(update.get("x")),
                y=_coord(update.get("y")),
                documentation=update.get("documentation"),
            )
            if ok:
                outcome.updated_ids.append(element_id)
            else:
                outcome.not_found_ids.append(element_id)
        return outcome

    def connect_elements(
        self,
        source_id: str,
        target_id: str,
        name: str | None = None,
    ) -> str | None:
        connection = self._modeler.add_connection(source_id, target_id, name=name or None)
        return connection.id if connection is not None else None

    def disconnect_elements(self, source_id: str, target_id: str) -> bool:
        """Remove every sequence flow from source_id to target_id."""
        doomed = [
            c.id for c in self._modeler.connections
            if c.source_id == source_id and c.target_id == target_id
        ]
        return self._modeler.remove_connections(doomed) > 0

    def delete_element(self, element_id: str) -> bool:
        """Delete a shape (with its connections) or a single connection."""
        if self._modeler.get_element(element_id) is not None:
            return self._modeler.remove_element(element_id)
        return self._modeler.remove_connections([element_id]) > 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_diagram_state(self) -> dict[str, list[dict[str, object]]]:
        return {
            "elements": [el.to_dict() for el in self._modeler.elements],
            "connections": [c.to_dict() for c in self._modeler.connections],
        }

    def find_element_by_name(self, fragment: str) -> str | None:
        """Case-insensitive substring match; the last match in registry order wins."""
        needle = fragment.lower()
        found: str | None = None
        for el in self._modeler.elements:
            if el.name and needle in el.name.lower():
                found = el.id
        return found

    def get_last_created_element(self) -> str | None:
        elements = self._modeler.elements
        return elements[-1].id if elements else None

    def export_diagram(self) -> str:
        return self._modeler.export_xml()
