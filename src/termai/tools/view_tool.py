import asyncio
import os
from pathlib import Path
from typing import Any

from termai.tool import ToolResponse
from termai.tools.common import resolve_path

DEFAULT_LINE_LIMIT = 2000
MAX_LINE_CHARS = 2000
MAX_FILE_BYTES = 250 * 1024


class ViewTool:
    def __init__(self, working_directory: str | None = None):
        self._working_directory = working_directory

    @property
    def name(self) -> str:
        return "view"

    @property
    def description(self) -> str:
        return (
            "Read a file and return its contents with line numbers. Use offset and limit to "
            "page through large files. Supports plain text files and .docx documents."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "file_path": {
                    "type": "string",
                    "description": "Absolute or relative path to the file to read",
                },
                "offset": {
                    "type": "integer",
                    "description": "Line number to start reading from (0-based)",
                },
                "limit": {
                    "type": "integer",
                    "description": f"Number of lines to read (default {DEFAULT_LINE_LIMIT})",
                },
            },
            "required": ["file_path"],
        }

    async def execute(self, tool_input: dict[str, Any]) -> ToolResponse:
        raw_path = str(tool_input.get("file_path", "")).strip()
        if not raw_path:
            return ToolResponse.error("file_path is required")

        offset = max(0, int(tool_input.get("offset") or 0))
        limit = int(tool_input.get("limit") or DEFAULT_LINE_LIMIT)
        if limit <= 0:
            return ToolResponse.error("limit must be positive")

        path = resolve_path(self._working_directory, raw_path)
        if not path.exists():
            return ToolResponse.error(f"File not found: {path}")
        if path.is_dir():
            return ToolResponse.error(f"Path is a directory, not a file: {path}")

        if path.suffix.lower() == ".docx":
            text = await asyncio.to_thread(_extract_docx_text, path)
        else:
            if path.stat().st_size > MAX_FILE_BYTES:
                return ToolResponse.error(
                    f"File is too large ({path.stat().st_size} bytes). Maximum size is {MAX_FILE_BYTES} bytes."
                )
            try:
                text = await asyncio.to_thread(path.read_text, encoding="utf-8")
            except UnicodeDecodeError:
                return ToolResponse.error(f"File is not valid UTF-8 text: {path}")

        lines = text.splitlines()
        window = lines[offset:offset + limit]
        numbered = [
            f"{offset + i + 1:6d}|{line[:MAX_LINE_CHARS]}"
            for i, line in enumerate(window)
        ]
        output = "\n".join(numbered)
        remaining = len(lines) - (offset + len(window))
        if remaining > 0:
            output += f"\n\n(File has {remaining} more lines. Use offset {offset + len(window)} to read beyond line {offset + len(window)}.)"
        return ToolResponse(f"<file>\n{output}\n</file>")


def _extract_docx_text(path: Path) -> str:
    from docx import Document

    doc = Document(str(path))
    return os.linesep.join(p.text for p in doc.paragraphs)
