import json
from typing import Any

from loguru import logger
from mcp import ClientSession
from mcp.types import TextContent

from termai.tool import ToolResponse


class McpToolProxy:
    """Exposes one tool of a connected MCP server as a local tool named ``<server>__<tool>``."""

    def __init__(
        self,
        server_name: str,
        tool_name: str,
        tool_description: str | None,
        tool_input_schema: dict[str, Any],
        session: ClientSession,
    ):
        self._server_name = server_name
        self._tool_name = tool_name
        self._description = tool_description or ""
        self._input_schema = tool_input_schema
        self._session = session

    @property
    def name(self) -> str:
        return f"{self._server_name}__{self._tool_name}"

    @property
    def description(self) -> str:
        return self._description

    @property
    def input_schema(self) -> dict[str, Any]:
        return self._input_schema

    async def execute(self, tool_input: dict[str, Any]) -> ToolResponse:
        logger.debug("MCP call {name} input={input}", name=self.name, input=json.dumps(tool_input, default=str))
        result = await self._session.call_tool(self._tool_name, arguments=tool_input)

        text_parts = [block.text for block in result.content if isinstance(block, TextContent)]
        skipped = len(result.content) - len(text_parts)
        if skipped:
            logger.debug("MCP call {name}: ignored {skipped} non-text block(s)", name=self.name, skipped=skipped)
        output = "\n".join(text_parts) if text_parts else "(no output)"

        if result.isError:
            logger.warning("MCP call {name} failed: {output}", name=self.name, output=output[:500])
            return ToolResponse.error(output)
        return ToolResponse(output)
