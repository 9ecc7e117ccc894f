from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


def utc_now() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds")


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    input: str = ""

    def parsed_input(self) -> dict[str, Any]:
        """Decode the raw JSON input. Raises ValueError when it is not a JSON object."""
        if not self.input.strip():
            return {}
        value = json.loads(self.input)
        if not isinstance(value, dict):
            raise ValueError(f"tool input must be a JSON object, got {type(value).__name__}")
        return value


@dataclass(frozen=True)
class ToolResult:
    tool_call_id: str
    content: str
    is_error: bool = False


@dataclass(frozen=True)
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0


@dataclass
class Session:
    id: str
    title: str = ""
    parent_session_id: str | None = None
    message_count: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cost: float = 0.0
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Message:
    id: str
    session_id: str
    role: Role
    content: str = ""
    thinking: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_results: list[ToolResult] = field(default_factory=list)
    finished: bool = False
    created_at: str = ""
    updated_at: str = ""


def tool_calls_to_json(tool_calls: list[ToolCall]) -> str:
    return json.dumps([{"id": c.id, "name": c.name, "input": c.input} for c in tool_calls], ensure_ascii=True)


def tool_calls_from_json(raw: str) -> list[ToolCall]:
    return [ToolCall(id=c["id"], name=c["name"], input=c.get("input", "")) for c in json.loads(raw or "[]")]


def tool_results_to_json(tool_results: list[ToolResult]) -> str:
    return json.dumps(
        [{"tool_call_id": r.tool_call_id, "content": r.content, "is_error": r.is_error} for r in tool_results],
        ensure_ascii=True,
    )


def tool_results_from_json(raw: str) -> list[ToolResult]:
    return [
        ToolResult(tool_call_id=r["tool_call_id"], content=r["content"], is_error=bool(r.get("is_error", False)))
        for r in json.loads(raw or "[]")
    ]
