"""
Tool-call dispatcher.

Responsibilities:
- Map a named remote function call onto one DiagramMutationAPI call
- Package the outcome as a structured response
- Never raise: every failure becomes an error-shaped response

Non-responsibilities:
- No batching (the orchestrator batches results per server message)
- No knowledge of the remote protocol beyond FunctionCall/FunctionResult
"""

from __future__ import annotations

from typing import Any, Callable, Mapping

from observability.logger import log_event
from observability.metrics import timed
from orchestrator.messages import FunctionCall, FunctionResult
from services.diagram_operations import DiagramMutationAPI
from spec import EXPORT_PREVIEW_CHARS


RenameHandler = Callable[[str], bool]

NOT_INITIALIZED_ERROR = "Modeler not initialized"


def _require(args: Mapping[str, Any], key: str) -> Any:
    value = args.get(key)
    if value is None or value == "":
        raise ValueError(f"Missing required argument: {key}")
    return value


class ToolCallDispatcher:
    """
    Executes tool calls against whichever mutation API is attached.

    attach()/detach() follow the lifetime of the live diagram. While
    detached, every call fails fast with NOT_INITIALIZED_ERROR.
    """

    def __init__(
        self,
        api: DiagramMutationAPI | None = None,
        *,
        on_rename: RenameHandler | None = None,
    ) -> None:
        self._api = api
        self._on_rename = on_rename

    def attach(self, api: DiagramMutationAPI) -> None:
        self._api = api

    def detach(self) -> None:
        self._api = None

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, call: FunctionCall) -> FunctionResult:
        """Run one call. Always returns a result."""
        with timed("tool_call", details={"tool": call.name}) as extra:
            response = self._execute(call)
            extra["success"] = "error" not in response and bool(response.get("success"))

        log_event({
            "event_type": "TOOL_CALL_EXECUTED",
            "level": "INFO" if extra["success"] else "WARNING",
            "tool": call.name,
            "call_id": call.call_id,
            "success": extra["success"],
            "error": response.get("error"),
        })
        return FunctionResult(call_id=call.call_id, name=call.name, response=response)

    def _execute(self, call: FunctionCall) -> dict[str, Any]:
        api = self._api
        if api is None:
            return {"success": False, "error": NOT_INITIALIZED_ERROR}

        try:
            return self._run(api, call.name, call.args)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            return {"success": False, "error": str(exc), "type": type(exc).__name__}

    def _run(  # pylint: disable=too-many-return-statements
        self,
        api: DiagramMutationAPI,
        name: str,
        args: Mapping[str, Any],
    ) -> dict[str, Any]:
        if name == "createElement":
            kind = _require(args, "type")
            label = args.get("name")
            element_id = api.create_element(kind, label, args.get("x"), args.get("y"))
            message = f'Created {kind} "{label}"' if label else f"Created {kind}"
            return {"success": True, "elementId": element_id, "message": message}

        if name == "updateElements":
            updates = _require(args, "updates")
            if not isinstance(updates, list):
                raise ValueError("updates must be a list")
            outcome = api.update_elements(updates)
            message = f"Updated {len(outcome.updated_ids)} element(s)"
            if outcome.not_found_ids:
                message += f"; not found: {', '.join(outcome.not_found_ids)}"
            return {
                "success": bool(outcome.updated_ids),
                "updatedIds": outcome.updated_ids,
                "notFoundIds": outcome.not_found_ids,
                "message": message,
            }

        if name == "connectElements":
            connection_id = api.connect_elements(
                _require(args, "sourceId"),
                _require(args, "targetId"),
                args.get("name"),
            )
            if connection_id is None:
                return {
                    "success": False,
                    "error": "Failed to connect elements - check element IDs",
                }
            return {"success": True, "connectionId": connection_id, "message": "Connected elements"}

        if name == "disconnectElements":
            ok = api.disconnect_elements(_require(args, "sourceId"), _require(args, "targetId"))
            return {
                "success": ok,
                "message": "Disconnected elements" if ok else "No connection found between elements",
            }

        if name == "deleteElement":
            ok = api.delete_element(_require(args, "elementId"))
            return {"success": ok, "message": "Deleted element" if ok else "Element not found"}

        if name == "getDiagramState":
            return {"success": True, **api.get_diagram_state()}

        if name == "findElementByName":
            element_id = api.find_element_by_name(str(_require(args, "name")))
            return {
                "success": element_id is not None,
                "elementId": element_id,
                "message": f"Found element with ID: {element_id}" if element_id else "Element not found",
            }

        if name == "getLastCreatedElement":
            element_id = api.get_last_created_element()
            return {"success": element_id is not None, "elementId": element_id}

        if name == "exportDiagram":
            xml = api.export_diagram()
            return {"success": True, "xml": xml[:EXPORT_PREVIEW_CHARS] + "..."}

        if name == "updateDiagramTitle":
            title = str(_require(args, "title")).strip()
            if not title:
                raise ValueError("Missing required argument: title")
            if self._on_rename is None:
                return {"success": False, "error": "No active session"}
            ok = self._on_rename(title)
            if not ok:
                return {"success": False, "error": "No active session"}
            return {"success": True, "message": f'Renamed diagram to "{title}"'}

        return {"success": False, "error": f"Unknown function: {name}"}
