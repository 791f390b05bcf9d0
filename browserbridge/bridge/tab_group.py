"""Lazy, single-flight creation of the shared browser tab group."""

from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from browserbridge.bridge.correlator import RequestCorrelator
from browserbridge.utils.exceptions import TabGroupInitError, sanitize_error_message

BOOTSTRAP_TOOL = "tabs_context_mcp"


def extract_group_id(raw: dict[str, Any]) -> Any | None:
    """Pull ``tabGroupId`` out of a raw tool result's tab context, if present and usable."""
    ctx = raw.get("tabContext")
    if not isinstance(ctx, dict):
        ctx = raw.get("context")
    if not isinstance(ctx, dict):
        return None
    group_id = ctx.get("tabGroupId")
    if group_id is None or group_id == "" or isinstance(group_id, bool) or group_id == -1:
        return None
    return group_id


class TabGroupInitializer:
    """
    Owns the tab group id every tool call is scoped to.

    ``ensure_group`` returns the cached id, joins an initialization already in
    flight, or starts one. Check and start happen in the same event-loop turn,
    so concurrent first callers share one bootstrap request. Only a successful
    extraction is cached.
    """

    def __init__(self, correlator: RequestCorrelator, *, bootstrap_tool: str = BOOTSTRAP_TOOL):
        self._correlator = correlator
        self._bootstrap_tool = bootstrap_tool
        self._group_id: Any | None = None
        self._inflight: asyncio.Task[Any | None] | None = None

    @property
    def group_id(self) -> Any | None:
        return self._group_id

    @property
    def initializing(self) -> bool:
        return self._inflight is not None

    async def ensure_group(self) -> Any | None:
        if self._group_id is not None:
            return self._group_id
        task = self._inflight
        if task is None:
            task = asyncio.get_running_loop().create_task(self._initialize())
            self._inflight = task
            task.add_done_callback(self._clear_inflight)
        # One caller being cancelled must not cancel the shared bootstrap.
        return await asyncio.shield(task)

    def _clear_inflight(self, task: asyncio.Task[Any | None]) -> None:
        if self._inflight is task:
            self._inflight = None
        if not task.cancelled():
            # Mark the exception retrieved when every waiter went away.
            task.exception()

    async def _initialize(self) -> Any | None:
        logger.info("Auto-initializing MCP tab group...")
        extracted: list[Any] = []

        def observe(raw: dict[str, Any]) -> None:
            group_id = extract_group_id(raw)
            if group_id is not None:
                extracted.append(group_id)

        try:
            await self._correlator.invoke(self._bootstrap_tool, {"createIfEmpty": True}, on_raw_result=observe)
        except Exception as e:
            logger.error("Failed to initialize MCP tab group: {}", sanitize_error_message(str(e)))
            raise TabGroupInitError() from e

        if not extracted:
            logger.warning("Could not extract tab group ID from initialization")
            return None
        self._group_id = extracted[-1]
        logger.info("MCP tab group initialized with ID: {}", self._group_id)
        return self._group_id
