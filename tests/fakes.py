import asyncio
from typing import Any

from termai.models import Message
from termai.provider_events import EventStream, ProviderEvent, ProviderResponse
from termai.tool import ToolResponse


class FakeTool:
    def __init__(self, name: str, result: str = "ok", *, delay: float = 0.0, error: Exception | None = None):
        self._name = name
        self._result = result
        self._delay = delay
        self._error = error
        self.calls: list[dict[str, Any]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return f"{self._name} test tool"

    @property
    def input_schema(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}}

    async def execute(self, tool_input: dict[str, Any]) -> ToolResponse:
        self.calls.append(tool_input)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return ToolResponse(self._result)


class ScriptedProvider:
    """Plays back one scripted event list per ``stream_response`` call."""

    def __init__(
        self,
        scripts: list[list[ProviderEvent]] | None = None,
        *,
        send_result: ProviderResponse | Exception | None = None,
    ):
        self._scripts = list(scripts or [])
        self._send_result = send_result if send_result is not None else ProviderResponse()
        self.stream_calls: list[list[Message]] = []
        self.send_calls: list[list[Message]] = []

    async def send_messages(self, messages: list[Message], tools: list) -> ProviderResponse:
        self.send_calls.append(list(messages))
        await asyncio.sleep(0)
        if isinstance(self._send_result, Exception):
            raise self._send_result
        return self._send_result

    def stream_response(self, messages: list[Message], tools: list) -> EventStream:
        self.stream_calls.append(list(messages))
        events = self._scripts.pop(0)

        async def produce(emit) -> None:
            for event in events:
                emit(event)
                await asyncio.sleep(0)

        return EventStream(produce, name="scripted-stream")
