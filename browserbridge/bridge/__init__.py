"""Bridge core: request correlation, tab group scoping, tool routing."""

from browserbridge.bridge.correlator import CorrelatorStats, PendingRequest, RequestCorrelator
from browserbridge.bridge.format import error_result, format_tool_response, format_tool_result
from browserbridge.bridge.router import ToolRouter, to_extension_name
from browserbridge.bridge.tab_group import TabGroupInitializer, extract_group_id

__all__ = [
    "CorrelatorStats",
    "PendingRequest",
    "RequestCorrelator",
    "TabGroupInitializer",
    "ToolRouter",
    "error_result",
    "extract_group_id",
    "format_tool_response",
    "format_tool_result",
    "to_extension_name",
]
