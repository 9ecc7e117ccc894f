from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Callable

from termai.permission import PermissionService
from termai.tool import Tool
from termai.tools.glob_tool import GlobTool
from termai.tools.grep_tool import GrepTool
from termai.tools.ls_tool import LsTool
from termai.tools.view_tool import ViewTool


class ToolRegistry:
    """Name-keyed set of tools, fixed once the agent is constructed."""

    def __init__(self, tools: list[Tool] | None = None):
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"duplicate tool name: {tool.name}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def tools(self) -> list[Tool]:
        return list(self._tools.values())

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools


@dataclass(frozen=True)
class ToolGroup:
    enabled: Callable[[dict], bool]
    build: Callable[[dict], list[Tool]]


def _always(_: dict) -> bool:
    return True


def _base_tools(ctx: dict) -> list[Tool]:
    working_directory = ctx["working_directory"]
    return [
        GlobTool(working_directory),
        GrepTool(working_directory),
        LsTool(working_directory),
        ViewTool(working_directory),
    ]


def _bash_enabled(ctx: dict) -> bool:
    return bool(ctx.get("enable_bash")) and ctx.get("permissions") is not None


def _bash_tools(ctx: dict) -> list[Tool]:
    from termai.tools.bash_tool import BashTool

    return [BashTool(ctx["permissions"], ctx["working_directory"])]


_GROUPS = [
    ToolGroup(enabled=_always, build=_base_tools),
    ToolGroup(enabled=_bash_enabled, build=_bash_tools),
]


def get_all(
    working_directory: str | None = None,
    permissions: PermissionService | None = None,
    enable_bash: bool = False,
) -> list[Tool]:
    ctx = {
        "working_directory": working_directory,
        "permissions": permissions,
        "enable_bash": enable_bash,
    }

    tools: list[Tool] = []
    for group in _GROUPS:
        if group.enabled(ctx):
            tools.extend(group.build(ctx))
    return tools


def task_tools(working_directory: str | None = None) -> list[Tool]:
    """Read-only tool set handed to sub-task agents."""
    return _base_tools({"working_directory": working_directory})
