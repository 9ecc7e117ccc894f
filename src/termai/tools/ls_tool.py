import asyncio
import fnmatch
import os
from pathlib import Path
from typing import Any

from termai.tool import ToolResponse
from termai.tools.common import is_ignored, resolve_path

MAX_ENTRIES = 1000


class LsTool:
    def __init__(self, working_directory: str | None = None):
        self._working_directory = working_directory

    @property
    def name(self) -> str:
        return "ls"

    @property
    def description(self) -> str:
        return (
            "List files and directories under a path as a tree. Hidden and build/cache "
            "directories are skipped. Prefer glob or grep when you know what you are looking for."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Directory to list. Defaults to the working directory.",
                },
                "ignore": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Glob patterns of names to leave out",
                },
            },
        }

    async def execute(self, tool_input: dict[str, Any]) -> ToolResponse:
        root = resolve_path(self._working_directory, tool_input.get("path"))
        if not root.exists():
            return ToolResponse.error(f"Path not found: {root}")
        if not root.is_dir():
            return ToolResponse.error(f"Not a directory: {root}")

        ignore = [str(p) for p in tool_input.get("ignore") or []]
        lines, truncated = await asyncio.to_thread(self._tree, root, ignore)
        if truncated:
            lines.insert(
                0,
                f"There are more than {MAX_ENTRIES} entries under this path. "
                "Use a more specific path or the glob tool. The first entries are listed below.\n",
            )
        return ToolResponse("\n".join(lines))

    @staticmethod
    def _tree(root: Path, ignore: list[str]) -> tuple[list[str], bool]:
        lines = [f"- {root}{os.sep}"]
        count = 0

        def skipped(name: str) -> bool:
            return is_ignored(name) or any(fnmatch.fnmatch(name, p) for p in ignore)

        def visit(directory: Path, depth: int) -> bool:
            nonlocal count
            try:
                entries = sorted(directory.iterdir(), key=lambda p: (not p.is_dir(), p.name))
            except OSError:
                return True
            for entry in entries:
                if skipped(entry.name):
                    continue
                if count >= MAX_ENTRIES:
                    return False
                count += 1
                indent = "  " * depth
                if entry.is_dir():
                    lines.append(f"{indent}- {entry.name}{os.sep}")
                    if not visit(entry, depth + 1):
                        return False
                else:
                    lines.append(f"{indent}- {entry.name}")
            return True

        complete = visit(root, 1)
        return lines, not complete
