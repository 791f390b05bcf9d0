"""Static tool catalogue and server instructions advertised to MCP clients.

The extension executes these tools; this process only forwards them.
"""

from __future__ import annotations

from typing import Any

from mcp.types import Tool


def _schema(properties: dict[str, Any] | None = None, required: list[str] | None = None) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "object", "properties": properties or {}}
    if required:
        schema["required"] = required
    return schema


def _str(description: str, **extra: Any) -> dict[str, Any]:
    return {"type": "string", "description": description, **extra}


def _num(description: str) -> dict[str, Any]:
    return {"type": "number", "description": description}


def _bool(description: str) -> dict[str, Any]:
    return {"type": "boolean", "description": description}


def _point(description: str) -> dict[str, Any]:
    return {"type": "array", "items": {"type": "number"}, "minItems": 2, "maxItems": 2, "description": description}


_TOOL_SPECS: list[tuple[str, str, dict[str, Any]]] = [
    (
        "navigate",
        'Navigate to a URL in the browser. Use "back" or "forward" to navigate history.',
        _schema({"url": _str('The URL to navigate to, or "back"/"forward" for history navigation')}, ["url"]),
    ),
    (
        "computer",
        "Perform browser interactions like clicking, typing, scrolling, and taking screenshots.\n\n"
        "Actions:\n"
        "- left_click, right_click, double_click, triple_click: Click at coordinates or element reference\n"
        "- type: Type text (use with coordinate or after clicking an input)\n"
        "- scroll: Scroll the page (direction: up, down, left, right)\n"
        "- scroll_to: Scroll to specific coordinates\n"
        '- key: Press a key or key combination (e.g., "Enter", "Ctrl+a")\n'
        "- hover: Hover over an element\n"
        "- screenshot: Take a screenshot of the current page\n"
        "- wait: Wait for a specified duration\n"
        "- left_click_drag: Drag from one point to another\n"
        "- zoom: Zoom in or out (direction: in, out, reset)",
        _schema(
            {
                "action": _str(
                    "The action to perform",
                    enum=[
                        "left_click",
                        "right_click",
                        "double_click",
                        "triple_click",
                        "type",
                        "scroll",
                        "scroll_to",
                        "key",
                        "hover",
                        "screenshot",
                        "wait",
                        "left_click_drag",
                        "zoom",
                    ],
                ),
                "coordinate": _point("The [x, y] coordinates for the action"),
                "ref": _str('Element reference from read_page (e.g., "ref_1")'),
                "text": _str('Text to type (for "type" action)'),
                "direction": _str(
                    "Direction for scroll or zoom actions",
                    enum=["up", "down", "left", "right", "in", "out", "reset"],
                ),
                "key": _str('Key or key combination to press (for "key" action)'),
                "duration": _num('Duration in milliseconds (for "wait" action)'),
                "startCoordinate": _point("Start coordinates for drag action"),
                "endCoordinate": _point("End coordinates for drag action"),
            },
            ["action"],
        ),
    ),
    (
        "form_input",
        "Fill form fields including text inputs, dropdowns, checkboxes, and radio buttons.",
        _schema(
            {
                "ref": _str('Element reference from read_page (e.g., "ref_1")'),
                "value": _str("Value to set in the form field"),
                "action": _str(
                    "Action type: fill for text, select for dropdown, check/uncheck for checkboxes",
                    enum=["fill", "select", "check", "uncheck"],
                ),
            },
            ["ref", "value"],
        ),
    ),
    (
        "find",
        "Search for elements on the page by text content.",
        _schema({"text": _str("Text to search for on the page"), "exact": _bool("Whether to match exactly")}, ["text"]),
    ),
    (
        "read_page",
        "Parse the current page DOM and return structured content with element references.\n"
        'Returns interactive elements (buttons, links, inputs) with references like "ref_1", "ref_2" '
        "that can be used with other tools.",
        _schema({"selector": _str("CSS selector to scope the reading (optional)")}),
    ),
    (
        "get_page_text",
        "Extract all visible text content from the current page.",
        _schema({"selector": _str("CSS selector to scope the text extraction (optional)")}),
    ),
    (
        "tabs_context",
        "Get information about the current tab and available tabs in the conversation tab group.",
        _schema(),
    ),
    (
        "tabs_create",
        "Create a new tab in the conversation tab group.",
        _schema({"url": _str("URL to open in the new tab (optional)")}),
    ),
    (
        "tabs_context_mcp",
        "Get information about tabs in the MCP-specific tab group.",
        _schema(),
    ),
    (
        "tabs_create_mcp",
        "Create a new tab specifically in the MCP tab group.",
        _schema({"url": _str("URL to open in the new tab (optional)")}),
    ),
    (
        "resize_window",
        "Resize the browser window to specified dimensions.",
        _schema(
            {"width": _num("Window width in pixels (max 8192)"), "height": _num("Window height in pixels (max 8192)")},
            ["width", "height"],
        ),
    ),
    (
        "read_console_messages",
        "Read browser console messages with optional filtering.",
        _schema(
            {
                "pattern": _str("Regex pattern to filter messages"),
                "errorsOnly": _bool("Only return error messages"),
                "limit": _num("Maximum number of messages to return"),
            }
        ),
    ),
    (
        "read_network_requests",
        "Read network requests (XHR, Fetch, documents) with optional URL filtering.",
        _schema({"pattern": _str("Regex pattern to filter by URL"), "limit": _num("Maximum number of requests to return")}),
    ),
    (
        "upload_image",
        "Upload an image to the page by simulating drag-and-drop.",
        _schema(
            {
                "ref": _str("Element reference for the drop target"),
                "imageData": _str("Base64-encoded image data"),
                "mimeType": _str("Image MIME type (default: image/png)"),
                "filename": _str("Filename for the uploaded image"),
            },
            ["ref", "imageData"],
        ),
    ),
    (
        "gif_creator",
        "Record browser actions and export as GIF.\n\n"
        "Actions:\n"
        "- start_recording: Begin capturing frames\n"
        "- stop_recording: Stop capturing frames\n"
        "- export: Generate GIF with optional enhancements\n"
        "- clear: Discard recorded frames",
        _schema(
            {
                "action": _str("GIF recording action", enum=["start_recording", "stop_recording", "export", "clear"]),
                "options": {
                    "type": "object",
                    "description": "Export options",
                    "properties": {
                        "showClicks": _bool("Show click indicators"),
                        "showDragPaths": _bool("Show drag path arrows"),
                        "showLabels": _bool("Show action labels"),
                        "showProgressBar": _bool("Show progress bar"),
                        "showWatermark": _bool("Show watermark"),
                        "quality": _num("GIF quality (1-100)"),
                    },
                },
            },
            ["action"],
        ),
    ),
    (
        "update_plan",
        "Create or update a workflow plan with structured tasks.",
        _schema({"plan": _str("Plan content in markdown or structured format")}, ["plan"]),
    ),
    (
        "shortcuts_list",
        "List saved shortcuts/workflows.",
        _schema(),
    ),
    (
        "shortcuts_execute",
        "Execute a saved shortcut/workflow.",
        _schema(
            {
                "name": _str("Name of the shortcut to execute"),
                "params": {"type": "object", "description": "Parameters to pass to the shortcut"},
            },
            ["name"],
        ),
    ),
    (
        "javascript_tool",
        "Execute JavaScript code in the context of the current page.",
        _schema(
            {"action": _str("Action type", const="javascript_exec"), "code": _str("JavaScript code to execute")},
            ["action", "code"],
        ),
    ),
    (
        "turn_answer_start",
        "Mark the start of a response (UI coordination).",
        _schema(),
    ),
]

TOOLS: list[Tool] = [Tool(name=name, description=desc, inputSchema=schema) for name, desc, schema in _TOOL_SPECS]
TOOL_NAMES: frozenset[str] = frozenset(tool.name for tool in TOOLS)


def list_tools() -> list[Tool]:
    return list(TOOLS)


def has_tool(name: str) -> bool:
    return name in TOOL_NAMES


SERVER_INSTRUCTIONS = """
Browser automation server for Chrome via a browser extension. Guidelines for effective tool usage:

## GIF Recording

When performing multi-step interactions the user may want to review, record them with gif_creator:
call action="start_recording" first, capture extra frames around actions, then "stop_recording"
and "export". Give the file a meaningful name (e.g. "checkout_flow.gif").

## Console Log Debugging

read_console_messages output can be very verbose. When looking for specific entries ALWAYS pass a
regex 'pattern' (e.g. "error|warning", "API.*failed"). Do not read unfiltered console output unless asked.

## Alerts and Dialogs (CRITICAL)

Do NOT trigger JavaScript alerts, confirms, prompts or other modal dialogs. They block all further
browser events and freeze the session until the user dismisses them manually. Prefer console.log via
javascript_tool, and warn the user before interacting with elements that may open a dialog.

## Avoid Rabbit Holes and Loops

If tool calls keep failing after 2-3 attempts, the extension stops responding, or pages do not load,
stop and ask the user how to proceed instead of retrying the same action.

## Tab Context and Management

This server initializes and manages the browser tab group automatically and injects the tab group
ID into every tool call; you do not need to call tabs_context first or pass tabGroupId.
Never reuse tab IDs from a previous session. Create a new tab with tabs_create when starting a new
task, and create a new tab rather than reusing an ID that reports as closed or invalid.

## Tool Execution Timeouts

Tool operations time out after 60 seconds by default. On timeout, check page state with
get_page_text or read_page and break the work into smaller steps.

## Cross-Tool Workflows

* Locate then act: find (or read_page) returns element refs to use with computer or form_input.
* Navigate then verify: navigate, then get_page_text/read_page, then filtered read_console_messages.
* Forms: read_page for refs, form_input for text inputs and selects, computer for checkboxes.
* Screenshots: computer with action="screenshot" returns base64 image data.
* Debugging: read_console_messages (filtered), read_network_requests, javascript_tool.

## Tool-Specific Notes

* javascript_tool: runs in page context and returns the last expression (no return statements).
* computer: the "wait" action accepts at most 30 seconds; scroll uses direction up/down/left/right.
* navigate: use "back" or "forward" for history navigation.
"""
