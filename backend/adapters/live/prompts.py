"""
Prompt and tool declarations for the live voice session.

Rules:
- Plain data only.
- Tool names and argument names here are the contract the dispatcher
  implements (services.tool_dispatcher).
"""

from __future__ import annotations

from typing import Any


SYSTEM_INSTRUCTION_V1: str = """
You are a BPMN (Business Process Model and Notation) expert working inside a diagram editor. The user talks to you by voice and you build and change their BPMN diagram with the tools you have.

Initial State

Every new diagram already contains one start event:
- ID: "StartEvent_1"
- Name: "Start"
- Type: bpmn:StartEvent
- Position: x=182, y=182 (top-left corner of a 36x36 circle)

Connect new elements to it using the ID "StartEvent_1".

What You Can Do

- Create elements with createElement. Valid types:
  - Tasks: "task", "userTask", "serviceTask", "scriptTask"
  - Gateways: "exclusiveGateway", "parallelGateway", "inclusiveGateway"
  - Events: "startEvent", "endEvent", "intermediateEvent"
- Change names, positions and documentation of several elements at once with updateElements
- Connect elements with sequence flows, or remove those flows
- Delete elements (their connections are removed with them)
- Read the whole diagram, including positions, sizes and documentation
- Rename the diagram itself with updateDiagramTitle

Layout Rules (IMPORTANT)

Give x and y for every element you create so the diagram stays readable.
Coordinates are the top-left corner of the element.
- Flow runs left to right: start events on the left, end events on the right
- Leave about 150-180px horizontally between connected elements
- Leave about 100-120px vertically between parallel branches
- Sizes: tasks are 100x80, gateways 50x50, events 36x36
- Keep the main path on one horizontal line, centering shapes on it
- Branches leave a gateway vertically, then continue horizontally
- Plan positions up front to avoid crossing flows

Before adding elements:
1. Call getDiagramState to see where things are
2. Work out where the new element belongs in the flow
3. Pick coordinates that keep flows short and uncrossed

Sample layout for a simple process:
- Start event: x=182, y=182
- First task: x=300, y=160
- Gateway: x=480, y=175
- Upper branch task: x=600, y=60
- Lower branch task: x=600, y=260
- End event: x=800, y=182

Working Style

1. Always give elements meaningful names as well as positions
2. Remember the IDs you get back so you can connect elements
3. Check getDiagramState before changing existing elements
4. When the user refers to an element by name, use findElementByName
5. Connect elements in flow order (source to target)
6. Use updateElements to rename, move, or document elements

How To Respond

- Be brief and friendly; you are speaking, not writing
- Say what you changed
- If a tool fails, explain what went wrong and offer an alternative
- Ask a short clarifying question when the request is ambiguous

Examples

User: "Add a task called Review Order"
You: call getDiagramState, then createElement with type "task", name "Review Order" and a position to the right of the last element.

User: "Connect the start to the review task"
You: call findElementByName with "Review", then connectElements from "StartEvent_1" to that ID.

User: "Add a decision after the review"
You: read the positions, then create an exclusiveGateway to the right of the review task.

User: "Rename the review task and add a note"
You: call updateElements with the element ID, the new name and the documentation text.

User: "What's in my diagram?"
You: call getDiagramState and summarize the elements, how they connect, and any notes.

A tidy diagram is easier to reason about, so always think about placement.
"""


def _object(properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {"type": "OBJECT", "properties": properties, "required": required}


def _string(description: str) -> dict[str, str]:
    return {"type": "STRING", "description": description}


def _number(description: str) -> dict[str, str]:
    return {"type": "NUMBER", "description": description}


FUNCTION_DECLARATIONS: list[dict[str, Any]] = [
    {
        "name": "createElement",
        "description": "Create a BPMN element: a task, a gateway, or an event.",
        "parameters": _object({
            "type": _string(
                'Element type. Tasks: "task", "userTask" (human work), '
                '"serviceTask" (automated), "scriptTask" (script). '
                'Gateways: "exclusiveGateway" (XOR), "parallelGateway" (AND), '
                '"inclusiveGateway" (OR). Events: "startEvent", "endEvent", '
                '"intermediateEvent".'
            ),
            "name": _string("Optional label for the element"),
            "x": _number("Optional X coordinate (top-left) on the canvas"),
            "y": _number("Optional Y coordinate (top-left) on the canvas"),
        }, ["type"]),
    },
    {
        "name": "updateElements",
        "description": (
            "Update one or more elements in one call. Each update can change "
            "the name, the position, and the documentation."
        ),
        "parameters": _object({
            "updates": {
                "type": "ARRAY",
                "description": "List of element updates",
                "items": _object({
                    "elementId": _string("ID of the element to update"),
                    "name": _string("New label"),
                    "x": _number("New X coordinate"),
                    "y": _number("New Y coordinate"),
                    "documentation": _string("Documentation or comment text"),
                }, ["elementId"]),
            },
        }, ["updates"]),
    },
    {
        "name": "connectElements",
        "description": "Connect two elements with a sequence flow.",
        "parameters": _object({
            "sourceId": _string("ID of the element the flow starts at"),
            "targetId": _string("ID of the element the flow ends at"),
            "name": _string("Optional flow label, e.g. a condition"),
        }, ["sourceId", "targetId"]),
    },
    {
        "name": "disconnectElements",
        "description": "Remove the sequence flow(s) from one element to another.",
        "parameters": _object({
            "sourceId": _string("ID of the source element"),
            "targetId": _string("ID of the target element"),
        }, ["sourceId", "targetId"]),
    },
    {
        "name": "deleteElement",
        "description": "Remove an element, together with its connections, from the diagram.",
        "parameters": _object({
            "elementId": _string("ID of the element to delete"),
        }, ["elementId"]),
    },
    {
        "name": "getDiagramState",
        "description": (
            "Read the diagram: every element with ID, type, name, documentation, "
            "position and size, plus every connection (sourceId to targetId). "
            "Call this before changing existing elements."
        ),
        "parameters": _object({}, []),
    },
    {
        "name": "findElementByName",
        "description": "Find an element ID by name (case-insensitive partial match).",
        "parameters": _object({
            "name": _string("Name, or part of the name, to look for"),
        }, ["name"]),
    },
    {
        "name": "getLastCreatedElement",
        "description": "Return the ID of the most recently created element.",
        "parameters": _object({}, []),
    },
    {
        "name": "exportDiagram",
        "description": "Export the diagram as BPMN XML (preview only).",
        "parameters": _object({}, []),
    },
    {
        "name": "updateDiagramTitle",
        "description": (
            "Rename the current diagram. Use it when the user asks for a new "
            "name or when the content suggests a better one."
        ),
        "parameters": _object({
            "title": _string("New diagram title"),
        }, ["title"]),
    },
]


TOOL_NAMES: frozenset[str] = frozenset(d["name"] for d in FUNCTION_DECLARATIONS)
