from __future__ import annotations

import json
from typing import Any

import anthropic
from loguru import logger
from tenacity import retry

from termai.errors import ProviderError
from termai.models import Message, Role, TokenUsage, ToolCall
from termai.provider import ProviderConfig
from termai.provider_events import (
    Complete,
    ContentDelta,
    ContentStart,
    ContentStop,
    Emit,
    EventStream,
    ProviderEvent,
    ProviderResponse,
    ThinkingDelta,
)
from termai.providers.common import default_retry_kwargs, sampling_temperature
from termai.tool import Tool

_RETRYABLE_ERRORS = (
    anthropic.RateLimitError,
    anthropic.APIConnectionError,
    anthropic.APITimeoutError,
)

_EPHEMERAL = {"type": "ephemeral"}

# Anthropic allows a handful of cache breakpoints; history gets the first two.
_MAX_CACHED_HISTORY_BLOCKS = 2


class AnthropicProvider:
    def __init__(self, config: ProviderConfig):
        self._config = config
        self._client = anthropic.AsyncAnthropic(api_key=config.api_key, base_url=config.base_url)

    def convert_tools(self, tools: list[Tool]) -> list[dict]:
        converted = [
            {
                "name": t.name,
                "description": t.description,
                "input_schema": t.input_schema,
            }
            for t in tools
        ]
        if converted:
            converted[-1]["cache_control"] = _EPHEMERAL
        return converted

    def convert_messages(self, messages: list[Message]) -> list[dict]:
        out: list[dict] = []
        cached_blocks = 0

        def text_block(text: str) -> dict:
            nonlocal cached_blocks
            block: dict[str, Any] = {"type": "text", "text": text}
            if cached_blocks < _MAX_CACHED_HISTORY_BLOCKS:
                block["cache_control"] = _EPHEMERAL
                cached_blocks += 1
            return block

        for msg in messages:
            if msg.role == Role.USER:
                out.append({"role": "user", "content": [text_block(msg.content)]})

            elif msg.role == Role.ASSISTANT:
                blocks: list[dict] = []
                if msg.content:
                    blocks.append(text_block(msg.content))
                for call in msg.tool_calls:
                    try:
                        tool_input = call.parsed_input()
                    except ValueError:
                        # The paired tool_result must still find its tool_use block.
                        logger.warning(f"Tool call {call.id} has malformed input; sending it as raw text")
                        tool_input = {"raw": call.input}
                    blocks.append({"type": "tool_use", "id": call.id, "name": call.name, "input": tool_input})
                if blocks:
                    out.append({"role": "assistant", "content": blocks})

            elif msg.role == Role.TOOL:
                out.append({
                    "role": "user",
                    "content": [
                        {
                            "type": "tool_result",
                            "tool_use_id": result.tool_call_id,
                            "content": [{"type": "text", "text": result.content}],
                            "is_error": result.is_error,
                        }
                        for result in msg.tool_results
                    ],
                })

        return out

    def _request_params(self, messages: list[Message], tools: list[Tool], temperature: float) -> dict:
        params: dict[str, Any] = {
            "model": self._config.model.api_model,
            "max_tokens": self._config.max_tokens,
            "temperature": temperature,
            "system": [{"type": "text", "text": self._config.system_prompt, "cache_control": _EPHEMERAL}],
            "messages": self.convert_messages(messages),
        }
        if tools:
            params["tools"] = self.convert_tools(tools)
        return params

    @retry(**default_retry_kwargs(_RETRYABLE_ERRORS))
    async def send_messages(self, messages: list[Message], tools: list[Tool]) -> ProviderResponse:
        params = self._request_params(messages, tools, 0.0)
        logger.debug(
            f"API request: model={params['model']}, max_tokens={params['max_tokens']}, "
            f"messages={len(params['messages'])}, tools={len(tools)}"
        )
        response = await self._client.messages.create(**params)
        result = self._to_response(response)
        logger.debug(
            f"API response: stop_reason={response.stop_reason}, input_tokens={result.usage.input_tokens}, "
            f"output_tokens={result.usage.output_tokens}"
        )
        return result

    def stream_response(self, messages: list[Message], tools: list[Tool]) -> EventStream:
        params = self._request_params(messages, tools, sampling_temperature(messages))
        logger.debug(
            f"Stream request: model={params['model']}, max_tokens={params['max_tokens']}, "
            f"temperature={params['temperature']}, messages={len(params['messages'])}, tools={len(tools)}"
        )

        async def produce(emit: Emit) -> None:
            final_message = await self._stream_once(params, emit)
            emit(Complete(self._to_response(final_message)))

        return EventStream(produce, name="anthropic-stream")

    @retry(**default_retry_kwargs(_RETRYABLE_ERRORS))
    async def _stream_once(self, params: dict, emit: Emit) -> Any:
        emitted = False
        try:
            async with self._client.messages.stream(**params) as stream:
                async for event in stream:
                    translated = _translate_event(event)
                    if translated is not None:
                        emit(translated)
                        emitted = True
                return await stream.get_final_message()
        except _RETRYABLE_ERRORS as ex:
            if emitted:
                # Retrying now would replay deltas the consumer has already folded.
                raise ProviderError(f"stream interrupted: {type(ex).__name__}: {ex}") from ex
            raise

    def _to_response(self, message: Any) -> ProviderResponse:
        content = ""
        tool_calls: list[ToolCall] = []
        for block in message.content:
            if block.type == "text":
                content += block.text
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(id=block.id, name=block.name, input=json.dumps(block.input)))

        usage = message.usage
        return ProviderResponse(
            content=content,
            tool_calls=tool_calls,
            usage=TokenUsage(
                input_tokens=usage.input_tokens or 0,
                output_tokens=usage.output_tokens or 0,
                cache_creation_tokens=getattr(usage, "cache_creation_input_tokens", None) or 0,
                cache_read_tokens=getattr(usage, "cache_read_input_tokens", None) or 0,
            ),
        )


def _translate_event(event: Any) -> ProviderEvent | None:
    if event.type == "content_block_start":
        return ContentStart()
    if event.type == "content_block_delta":
        if event.delta.type == "text_delta":
            return ContentDelta(event.delta.text)
        if event.delta.type == "thinking_delta":
            return ThinkingDelta(event.delta.thinking)
        return None
    if event.type == "content_block_stop":
        return ContentStop()
    return None
