from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from termai.memory.session_service import SessionService
from termai.tool import ToolResponse, current_session_id, current_tool_call_id

if TYPE_CHECKING:
    from termai.agent import Agent


class AgentTool:
    """Hands a self-contained research task to a read-only sub-agent in its own sub-session."""

    def __init__(self, sessions: SessionService, task_agent: Agent):
        self._sessions = sessions
        self._task_agent = task_agent

    @property
    def name(self) -> str:
        return "agent"

    @property
    def description(self) -> str:
        return (
            "Launch a sub-agent that can search and read files (glob, grep, ls, view) to answer a "
            "self-contained question, such as locating where something is defined. The sub-agent "
            "cannot modify anything. Give it a detailed prompt; its final report is returned."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "prompt": {
                    "type": "string",
                    "description": "The task for the sub-agent to perform",
                },
            },
            "required": ["prompt"],
        }

    async def execute(self, tool_input: dict[str, Any]) -> ToolResponse:
        prompt = str(tool_input.get("prompt", "")).strip()
        if not prompt:
            return ToolResponse.error("prompt is required")

        parent_session_id = current_session_id.get()
        tool_call_id = current_tool_call_id.get()
        if not parent_session_id or not tool_call_id:
            return ToolResponse.error("agent tool must be run from within a session")

        session = self._sessions.create_task_session(tool_call_id, parent_session_id, "New Agent Session")
        logger.info(f"Sub-agent started in session {session.id} (parent={parent_session_id})")
        result = await self._task_agent.generate(session.id, prompt)
        if not result.content:
            return ToolResponse.error("sub-agent returned no response")
        return ToolResponse(result.content)
