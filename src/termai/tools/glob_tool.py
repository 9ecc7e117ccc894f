import asyncio
from pathlib import Path
from typing import Any

from termai.tool import ToolResponse
from termai.tools.common import MAX_RESULTS, is_ignored, mtime_or_zero, resolve_path


class GlobTool:
    def __init__(self, working_directory: str | None = None):
        self._working_directory = working_directory

    @property
    def name(self) -> str:
        return "glob"

    @property
    def description(self) -> str:
        return (
            "Find files by name using glob patterns such as '**/*.py' or 'src/**/*.ts'. "
            f"Returns matching paths, most recently modified first (at most {MAX_RESULTS})."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "pattern": {
                    "type": "string",
                    "description": "The glob pattern to match files against",
                },
                "path": {
                    "type": "string",
                    "description": "Directory to search in. Defaults to the working directory.",
                },
            },
            "required": ["pattern"],
        }

    async def execute(self, tool_input: dict[str, Any]) -> ToolResponse:
        pattern = str(tool_input.get("pattern", "")).strip()
        if not pattern:
            return ToolResponse.error("pattern is required")

        root = resolve_path(self._working_directory, tool_input.get("path"))
        if not root.is_dir():
            return ToolResponse.error(f"Directory not found: {root}")

        matches, truncated = await asyncio.to_thread(self._find, root, pattern)
        if not matches:
            return ToolResponse("No files found")

        lines = [str(p) for p in matches]
        if truncated:
            lines.append(f"\n(Results are truncated to the first {MAX_RESULTS}. Use a more specific pattern.)")
        return ToolResponse("\n".join(lines))

    @staticmethod
    def _find(root: Path, pattern: str) -> tuple[list[Path], bool]:
        found = [
            p
            for p in root.glob(pattern)
            if p.is_file() and not any(is_ignored(part) for part in p.relative_to(root).parts)
        ]
        found.sort(key=mtime_or_zero, reverse=True)
        return found[:MAX_RESULTS], len(found) > MAX_RESULTS
