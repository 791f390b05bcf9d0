"""Convert extension tool replies into MCP tool results."""

from __future__ import annotations

import json
from typing import Any

from mcp.types import CallToolResult, ImageContent, TextContent

from browserbridge.native.protocol import ToolResponse, safe_dict

SUCCESS_TEXT = "Tool executed successfully."
DEFAULT_IMAGE_MIME = "image/png"


def text_content(text: str) -> TextContent:
    return TextContent(type="text", text=text)


def error_result(message: str) -> CallToolResult:
    """Single ``Error: ...`` text item, flagged as an error."""
    return CallToolResult(content=[text_content(f"Error: {message}")], isError=True)


def format_tab_context(ctx: dict[str, Any]) -> str:
    tabs = ctx.get("availableTabs")
    lines = []
    for tab in tabs if isinstance(tabs, list) else []:
        row = safe_dict(tab)
        lines.append(f'  • tabId {row.get("tabId")}: "{row.get("title", "")}" ({row.get("url", "")})')
    executed_on = ctx.get("executedOnTabId")
    if executed_on is None:
        executed_on = ctx.get("currentTabId")
    return "\n".join(
        [
            "",
            "",
            "Tab Context:",
            f"- Executed on tabId: {executed_on}",
            "- Available tabs:",
            "\n".join(lines),
        ]
    )


def format_tool_result(result: dict[str, Any], *, tab_context: dict[str, Any] | None = None) -> CallToolResult:
    """
    Map the extension's ``{content, tabContext?}`` result to MCP content.

    ``tab_context`` overrides the lookup of ``tabContext`` (or ``context``) in
    ``result``.

    String content becomes one text item. List content keeps text items with
    text and image items with data; anything else is dropped.
    """
    items: list[TextContent | ImageContent] = []
    content = result.get("content")
    if isinstance(content, str) and content:
        items.append(text_content(content))
    elif isinstance(content, list):
        for entry in content:
            if not isinstance(entry, dict):
                continue
            kind = entry.get("type")
            if kind == "text" and entry.get("text"):
                items.append(text_content(str(entry["text"])))
            elif kind == "image" and entry.get("data"):
                items.append(
                    ImageContent(
                        type="image",
                        data=str(entry["data"]),
                        mimeType=str(entry.get("mimeType") or DEFAULT_IMAGE_MIME),
                    )
                )

    ctx = tab_context if tab_context is not None else result.get("tabContext") or result.get("context")
    if isinstance(ctx, dict):
        items.append(text_content(format_tab_context(ctx)))

    if not items:
        items.append(text_content(SUCCESS_TEXT))
    return CallToolResult(content=items)


def format_tool_response(response: ToolResponse) -> CallToolResult:
    """Error wins over result; neither means plain success."""
    if response.error is not None:
        detail = response.error.get("content")
        message = detail if isinstance(detail, str) else json.dumps(detail, ensure_ascii=False)
        return error_result(message)
    if response.result is not None:
        return format_tool_result(response.result, tab_context=response.tab_context)
    return CallToolResult(content=[text_content(SUCCESS_TEXT)])
