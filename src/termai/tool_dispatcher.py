from __future__ import annotations

import asyncio

from loguru import logger

from termai.models import ToolCall, ToolResult
from termai.tool import current_session_id, current_tool_call_id
from termai.tool_registry import ToolRegistry


class ToolDispatcher:
    """Runs one batch of tool calls concurrently and returns results in call order."""

    def __init__(self, *, max_tool_result_chars: int = 0):
        self._max_tool_result_chars = max_tool_result_chars

    async def execute_all(
        self,
        tool_calls: list[ToolCall],
        registry: ToolRegistry,
        *,
        session_id: str = "",
    ) -> list[ToolResult]:
        results: list[ToolResult | None] = [None] * len(tool_calls)

        async def run_one(index: int, call: ToolCall) -> None:
            current_session_id.set(session_id)
            current_tool_call_id.set(call.id)
            results[index] = await self._run_call(call, registry)

        # Each gather child runs in its own copy of the context.
        await asyncio.gather(*(run_one(i, call) for i, call in enumerate(tool_calls)))
        return [r for r in results if r is not None]

    async def _run_call(self, call: ToolCall, registry: ToolRegistry) -> ToolResult:
        tool = registry.get(call.name)
        if tool is None:
            logger.warning(f"Tool call {call.id}: tool not found: {call.name}")
            return ToolResult(tool_call_id=call.id, content=f"tool not found: {call.name}", is_error=True)

        logger.info(f"Tool started: {call.name} ({call.id})")
        try:
            tool_input = call.parsed_input()
        except ValueError as ex:
            logger.warning(f"Tool {call.name} received malformed input: {ex}")
            return ToolResult(tool_call_id=call.id, content=f"error running tool: {ex}", is_error=True)

        try:
            response = await tool.execute(tool_input)
        except Exception as ex:
            logger.error(f"Tool {call.name} failed: {type(ex).__name__}: {ex}")
            return ToolResult(tool_call_id=call.id, content=f"error running tool: {ex}", is_error=True)

        content = self._truncate_tool_result(response.content, call.name)
        logger.info(f"Tool completed: {call.name} ({call.id}) error={response.is_error}")
        return ToolResult(tool_call_id=call.id, content=content, is_error=response.is_error)

    def _truncate_tool_result(self, result: str, tool_name: str) -> str:
        if self._max_tool_result_chars <= 0 or len(result) <= self._max_tool_result_chars:
            return result

        original_length = len(result)
        truncated = result[: self._max_tool_result_chars]
        message = (
            f"\n\n[OUTPUT TRUNCATED: Showing {self._max_tool_result_chars:,} "
            f"of {original_length:,} characters from {tool_name}]"
        )
        logger.warning(
            f"{tool_name} output truncated from {original_length:,} "
            f"to {self._max_tool_result_chars:,} chars"
        )
        return truncated + message
