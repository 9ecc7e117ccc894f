from __future__ import annotations

from collections.abc import Callable
from enum import Enum

from loguru import logger

from termai.errors import ProviderError
from termai.memory.message_service import CreateMessageParams, MessageService
from termai.models import Message, Role, TokenUsage
from termai.provider import LLMProvider
from termai.provider_events import Complete, ContentDelta, Error, EventStream, ProviderResponse, ThinkingDelta
from termai.tool_dispatcher import ToolDispatcher
from termai.tool_registry import ToolRegistry


class TurnState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    TOOL_EXECUTING = "tool_executing"
    DONE = "done"
    ERRORED = "errored"


class TurnEngine:
    """Drives one user turn: stream, persist, run tools, repeat until the model stops asking for tools."""

    def __init__(
        self,
        *,
        provider: LLMProvider,
        registry: ToolRegistry,
        messages: MessageService,
        dispatcher: ToolDispatcher,
        on_usage: Callable[[str, TokenUsage], None],
    ) -> None:
        self._provider = provider
        self._registry = registry
        self._messages = messages
        self._dispatcher = dispatcher
        self._on_usage = on_usage
        self.state = TurnState.IDLE

    async def run(self, session_id: str, history: list[Message]) -> Message:
        """Run the tool loop. ``history`` is extended in place; returns the final assistant message."""
        assistant: Message | None = None
        try:
            while True:
                self.state = TurnState.STREAMING
                assistant = self._messages.create(session_id, CreateMessageParams(role=Role.ASSISTANT))
                response = await self._consume(
                    self._provider.stream_response(history, self._registry.tools()),
                    assistant,
                )

                assistant.tool_calls = list(response.tool_calls)
                if response.content:
                    assistant.content = response.content
                self._messages.update(assistant)
                self._on_usage(session_id, response.usage)

                if not assistant.tool_calls:
                    assistant.finished = True
                    self._messages.update(assistant)
                    self.state = TurnState.DONE
                    return assistant

                assistant.finished = True
                self._messages.update(assistant)

                self.state = TurnState.TOOL_EXECUTING
                tool_names = ", ".join(c.name for c in assistant.tool_calls)
                logger.info(f"Running {len(assistant.tool_calls)} tool call(s): {tool_names}")
                results = await self._dispatcher.execute_all(
                    assistant.tool_calls, self._registry, session_id=session_id
                )
                tool_message = self._messages.create(
                    session_id,
                    CreateMessageParams(role=Role.TOOL, tool_results=results),
                )
                history.extend([assistant, tool_message])
        except BaseException:
            # Cancellation and persistence or usage failures land here too.
            self.state = TurnState.ERRORED
            if assistant is not None:
                self._close_abandoned(assistant)
            raise

    async def _consume(self, stream: EventStream, assistant: Message) -> ProviderResponse:
        try:
            async for event in stream:
                if isinstance(event, ContentDelta):
                    assistant.content += event.text
                    self._messages.update(assistant)
                elif isinstance(event, ThinkingDelta):
                    assistant.thinking += event.text
                    self._messages.update(assistant)
                elif isinstance(event, Error):
                    logger.error(f"Provider stream error: {type(event.error).__name__}: {event.error}")
                    self._finish(assistant)
                    raise ProviderError(f"provider error: {event.error}") from event.error
                elif isinstance(event, Complete):
                    return event.response
        finally:
            await stream.aclose()

        self._finish(assistant)
        raise ProviderError("stream ended without a final response")

    def _finish(self, assistant: Message) -> None:
        assistant.finished = True
        self._messages.update(assistant)

    def _close_abandoned(self, assistant: Message) -> None:
        """Finish a message left open by an aborted turn."""
        try:
            if self._messages.get(assistant.id).finished:
                return
            assistant.finished = True
            self._messages.update(assistant)
        except Exception as ex:
            # The original failure is re-raised by the caller.
            logger.error(f"Could not finish message {assistant.id}: {type(ex).__name__}: {ex}")
