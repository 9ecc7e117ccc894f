import asyncio
import platform
import subprocess
from typing import Any

from termai.permission import CreatePermissionRequest, PermissionService
from termai.tool import ToolResponse, current_session_id

_IS_WINDOWS = platform.system() == "Windows"

DEFAULT_TIMEOUT_SECONDS = 60
MAX_TIMEOUT_SECONDS = 600


class BashTool:
    def __init__(self, permissions: PermissionService, working_directory: str | None = None):
        self._permissions = permissions
        self._cwd = working_directory

    @property
    def name(self) -> str:
        return "bash"

    @property
    def description(self) -> str:
        return (
            "Execute a shell command and return its output (stdout + stderr). "
            "The user is asked for permission before the command runs."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "The bash command to execute",
                },
                "timeout": {
                    "type": "integer",
                    "description": f"Timeout in seconds (default {DEFAULT_TIMEOUT_SECONDS}, max {MAX_TIMEOUT_SECONDS})",
                },
            },
            "required": ["command"],
        }

    async def execute(self, tool_input: dict[str, Any]) -> ToolResponse:
        command = str(tool_input.get("command", "")).strip()
        if not command:
            return ToolResponse.error("command is required")
        timeout = min(int(tool_input.get("timeout") or DEFAULT_TIMEOUT_SECONDS), MAX_TIMEOUT_SECONDS)

        granted = await self._permissions.request(CreatePermissionRequest(
            session_id=current_session_id.get(),
            tool_name=self.name,
            action="execute",
            description=f"Execute command: {command}",
            path=self._cwd or "",
        ))
        if not granted:
            return ToolResponse.error("permission denied")

        if _IS_WINDOWS:
            proc = await asyncio.create_subprocess_shell(
                f"cmd.exe /c {command}",
                stdin=subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._cwd,
                creationflags=subprocess.CREATE_NEW_PROCESS_GROUP,
            )
        else:
            proc = await asyncio.create_subprocess_shell(
                command,
                stdin=subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._cwd,
            )

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            try:
                await asyncio.wait_for(proc.communicate(), timeout=5)
            except (asyncio.TimeoutError, ProcessLookupError):
                pass
            return ToolResponse.error(f"[timed out after {timeout}s]")

        output = stdout.decode(errors="replace") + stderr.decode(errors="replace")

        if proc.returncode != 0:
            return ToolResponse.error(f"{output}\n[exit code {proc.returncode}]")

        return ToolResponse(output.rstrip())
