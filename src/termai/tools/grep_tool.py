import asyncio
import fnmatch
import re
from pathlib import Path
from typing import Any

from termai.tool import ToolResponse
from termai.tools.common import MAX_RESULTS, mtime_or_zero, resolve_path, walk_files

_MAX_LINE_CHARS = 300


class GrepTool:
    def __init__(self, working_directory: str | None = None):
        self._working_directory = working_directory

    @property
    def name(self) -> str:
        return "grep"

    @property
    def description(self) -> str:
        return (
            "Search file contents with a regular expression. Optionally restrict the search to "
            "files whose name matches an include pattern such as '*.py'. Returns matching lines "
            "grouped by file, most recently modified files first."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "pattern": {
                    "type": "string",
                    "description": "The regular expression to search for",
                },
                "path": {
                    "type": "string",
                    "description": "Directory to search in. Defaults to the working directory.",
                },
                "include": {
                    "type": "string",
                    "description": "File name pattern to include, e.g. '*.py' or '*.{ts,tsx}'",
                },
            },
            "required": ["pattern"],
        }

    async def execute(self, tool_input: dict[str, Any]) -> ToolResponse:
        pattern = str(tool_input.get("pattern", ""))
        if not pattern:
            return ToolResponse.error("pattern is required")
        try:
            regex = re.compile(pattern)
        except re.error as ex:
            return ToolResponse.error(f"Invalid regular expression: {ex}")

        root = resolve_path(self._working_directory, tool_input.get("path"))
        if not root.is_dir():
            return ToolResponse.error(f"Directory not found: {root}")

        include = _expand_braces(tool_input.get("include") or "")
        matches, truncated = await asyncio.to_thread(self._search, root, regex, include)
        if not matches:
            return ToolResponse("No matches found")

        total = sum(len(lines) for _, lines in matches)
        out = [f"Found {total} matches"]
        for path, lines in matches:
            out.append(f"\n{path}:")
            for line_number, text in lines:
                out.append(f"  Line {line_number}: {text}")
        if truncated:
            out.append(f"\n(Results are truncated to the first {MAX_RESULTS} matches. Use a more specific pattern.)")
        return ToolResponse("\n".join(out))

    @staticmethod
    def _search(root: Path, regex: re.Pattern, include: list[str]) -> tuple[list[tuple[Path, list[tuple[int, str]]]], bool]:
        by_file: list[tuple[Path, list[tuple[int, str]]]] = []
        count = 0
        truncated = False
        for path in walk_files(root):
            if include and not any(fnmatch.fnmatch(path.name, p) for p in include):
                continue
            try:
                with open(path, encoding="utf-8") as f:
                    hits = [
                        (n, line.rstrip("\n")[:_MAX_LINE_CHARS])
                        for n, line in enumerate(f, start=1)
                        if regex.search(line)
                    ]
            except (UnicodeDecodeError, OSError):
                continue
            if not hits:
                continue
            if count >= MAX_RESULTS:
                truncated = True
                break
            if count + len(hits) > MAX_RESULTS:
                hits = hits[: MAX_RESULTS - count]
                truncated = True
            by_file.append((path, hits))
            count += len(hits)
            if truncated:
                break
        by_file.sort(key=lambda item: mtime_or_zero(item[0]), reverse=True)
        return by_file, truncated


def _expand_braces(pattern: str) -> list[str]:
    """'*.{ts,tsx}' -> ['*.ts', '*.tsx']; fnmatch has no brace support."""
    match = re.search(r"\{([^{}]*)\}", pattern)
    if match is None:
        return [pattern] if pattern else []
    head, tail = pattern[: match.start()], pattern[match.end():]
    expanded: list[str] = []
    for option in match.group(1).split(","):
        expanded.extend(_expand_braces(head + option + tail))
    return expanded
