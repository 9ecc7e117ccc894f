from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class ToolResponse:
    content: str
    is_error: bool = False

    @classmethod
    def error(cls, content: str) -> ToolResponse:
        return cls(content=content, is_error=True)


@runtime_checkable
class Tool(Protocol):
    @property
    def name(self) -> str: ...

    @property
    def description(self) -> str: ...

    @property
    def input_schema(self) -> dict[str, Any]: ...

    async def execute(self, tool_input: dict[str, Any]) -> ToolResponse: ...


# Session on whose behalf tools are running; set by the dispatcher per call.
current_session_id: ContextVar[str] = ContextVar("current_session_id", default="")
current_tool_call_id: ContextVar[str] = ContextVar("current_tool_call_id", default="")
