"""Tool routing: tab group scoping and MCP-to-extension name translation."""

from __future__ import annotations

from typing import Any

from loguru import logger
from mcp.types import CallToolResult

from browserbridge.bridge.correlator import RequestCorrelator
from browserbridge.bridge.format import error_result
from browserbridge.bridge.tab_group import TabGroupInitializer
from browserbridge.utils.exceptions import TabGroupInitError

# MCP-facing names the extension knows under a different name.
EXTENSION_TOOL_NAMES: dict[str, str] = {
    "tabs_context": "tabs_context_mcp",
    "tabs_create": "tabs_create_mcp",
}

# Queries the group itself, so it is never scoped by it.
GROUP_CONTEXT_TOOL = "tabs_context"


def to_extension_name(tool: str) -> str:
    return EXTENSION_TOOL_NAMES.get(tool, tool)


class ToolRouter:
    """Entry point for MCP ``tools/call``; returns a result, never raises for tool failures."""

    def __init__(self, correlator: RequestCorrelator, tab_group: TabGroupInitializer):
        self._correlator = correlator
        self._tab_group = tab_group

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        *,
        client_id: str | None = None,
    ) -> CallToolResult:
        args = dict(arguments or {})
        if name == GROUP_CONTEXT_TOOL:
            args["createIfEmpty"] = True
        else:
            try:
                group_id = await self._tab_group.ensure_group()
            except TabGroupInitError as e:
                return error_result(e.message)
            if not args.get("tabGroupId") and group_id is not None:
                args["tabGroupId"] = group_id

        target = to_extension_name(name)
        logger.info("tools/call {} -> {}", name, target)
        return await self._correlator.invoke(target, args, client_id=client_id)
