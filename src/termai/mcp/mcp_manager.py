import asyncio
import contextlib
import os
from typing import Any

from loguru import logger
from mcp import ClientSession, StdioServerParameters, stdio_client
from mcp.client.streamable_http import streamable_http_client

from termai.mcp.mcp_tool_proxy import McpToolProxy
from termai.tool import Tool

_SHUTDOWN_TIMEOUT = 5.0


def _open_transport(config: dict[str, Any]):
    """Async context manager yielding ``(read_stream, write_stream)`` for the configured transport."""
    transport = config.get("transport", "stdio")
    if transport == "stdio":
        # Server inherits our environment (including .env secrets) plus per-server overrides.
        env = dict(os.environ)
        env.update(config.get("env") or {})
        return stdio_client(StdioServerParameters(
            command=config["command"],
            args=config.get("args", []),
            env=env,
        ))
    if transport == "http":
        return _http_streams(config["url"])
    raise ValueError(f"Unknown MCP transport '{transport}'")


@contextlib.asynccontextmanager
async def _http_streams(url: str):
    async with streamable_http_client(url) as (read_stream, write_stream, _):
        yield read_stream, write_stream


class _ServerConnection:
    """One MCP server kept alive by a background task until ``stop``."""

    def __init__(self, name: str, config: dict[str, Any]):
        self.name = name
        self.tools: list[Tool] = []
        self._config = config
        self._ready = asyncio.Event()
        self._shutdown = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._error: Exception | None = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name=f"mcp-{self.name}")
        await self._ready.wait()
        if self._error is not None:
            raise self._error

    async def _run(self) -> None:
        try:
            async with _open_transport(self._config) as (read_stream, write_stream):
                async with ClientSession(read_stream, write_stream) as session:
                    await session.initialize()
                    listed = await session.list_tools()
                    self.tools = [
                        McpToolProxy(
                            server_name=self.name,
                            tool_name=tool.name,
                            tool_description=tool.description,
                            tool_input_schema=tool.inputSchema,
                            session=session,
                        )
                        for tool in listed.tools
                    ]
                    self._ready.set()
                    await self._shutdown.wait()
        except Exception as ex:
            self._error = ex
            self._ready.set()

    async def stop(self) -> None:
        if self._task is None or self._task.done():
            return
        # stdio_client runs an anyio task group that may ignore a bare cancel.
        self._shutdown.set()
        self._task.cancel()
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=_SHUTDOWN_TIMEOUT)
        except (asyncio.CancelledError, asyncio.TimeoutError):
            pass


class McpManager:
    """Connects the configured MCP servers and collects their tools."""

    def __init__(self, server_configs: dict[str, dict[str, Any]]):
        self._server_configs = server_configs
        self._connections: list[_ServerConnection] = []

    async def connect_all(self) -> list[Tool]:
        tools: list[Tool] = []
        for server_name, config in self._server_configs.items():
            conn = _ServerConnection(server_name, config)
            self._connections.append(conn)
            try:
                await conn.start()
            except Exception as ex:
                logger.error(f"MCP server '{server_name}' unavailable: {ex}")
                continue
            tools.extend(conn.tools)
            logger.info(f"MCP server '{server_name}' connected with {len(conn.tools)} tool(s)")
        return tools

    async def close(self) -> None:
        for conn in self._connections:
            try:
                await conn.stop()
            except Exception as ex:
                logger.warning(f"MCP server '{conn.name}' did not shut down cleanly: {ex}")
        self._connections.clear()
