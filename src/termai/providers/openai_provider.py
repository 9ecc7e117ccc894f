from __future__ import annotations

from typing import Any

import openai
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
    ProviderResponse,
)
from termai.providers.common import default_retry_kwargs, sampling_temperature
from termai.tool import Tool

_RETRYABLE_ERRORS = (
    openai.RateLimitError,
    openai.APIConnectionError,
    openai.APITimeoutError,
)


def _to_openai_messages(system_prompt: str, messages: list[Message]) -> list[dict]:
    """Convert conversation messages to OpenAI chat format."""
    out: list[dict] = []

    if system_prompt:
        out.append({"role": "system", "content": system_prompt})

    for msg in messages:
        if msg.role == Role.USER:
            out.append({"role": "user", "content": msg.content})

        elif msg.role == Role.ASSISTANT:
            oai_msg: dict = {"role": "assistant", "content": msg.content or None}
            if msg.tool_calls:
                oai_msg["tool_calls"] = [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": call.input or "{}"},
                    }
                    for call in msg.tool_calls
                ]
            out.append(oai_msg)

        elif msg.role == Role.TOOL:
            for result in msg.tool_results:
                out.append({
                    "role": "tool",
                    "tool_call_id": result.tool_call_id,
                    "content": result.content,
                })

    return out


def _to_openai_tools(tools: list[Tool]) -> list[dict]:
    return [
        {
            "type": "function",
            "function": {
                "name": t.name,
                "description": t.description,
                "parameters": t.input_schema,
            },
        }
        for t in tools
    ]


def _usage_from(usage: Any) -> TokenUsage:
    if usage is None:
        return TokenUsage()
    details = getattr(usage, "prompt_tokens_details", None)
    cached = (getattr(details, "cached_tokens", None) or 0) if details is not None else 0
    return TokenUsage(
        input_tokens=max(0, (usage.prompt_tokens or 0) - cached),
        output_tokens=usage.completion_tokens or 0,
        cache_read_tokens=cached,
    )


class OpenAIProvider:
    """Adapter for OpenAI chat completions and OpenAI-compatible endpoints such as Groq."""

    def __init__(self, config: ProviderConfig):
        self._config = config
        self._client = openai.AsyncOpenAI(api_key=config.api_key, base_url=config.base_url)

    def _request_params(self, messages: list[Message], tools: list[Tool], temperature: float) -> dict:
        params: dict[str, Any] = {
            "model": self._config.model.api_model,
            "max_tokens": self._config.max_tokens,
            "temperature": temperature,
            "messages": _to_openai_messages(self._config.system_prompt, messages),
        }
        if tools:
            params["tools"] = _to_openai_tools(tools)
        return params

    @retry(**default_retry_kwargs(_RETRYABLE_ERRORS))
    async def send_messages(self, messages: list[Message], tools: list[Tool]) -> ProviderResponse:
        params = self._request_params(messages, tools, 0.0)
        logger.debug(f"API request: model={params['model']}, messages={len(params['messages'])}, tools={len(tools)}")
        response = await self._client.chat.completions.create(**params)
        choice = response.choices[0]
        tool_calls = [
            ToolCall(id=tc.id, name=tc.function.name, input=tc.function.arguments or "")
            for tc in (choice.message.tool_calls or [])
        ]
        result = ProviderResponse(
            content=choice.message.content or "",
            tool_calls=tool_calls,
            usage=_usage_from(response.usage),
        )
        logger.debug(f"API response: finish_reason={choice.finish_reason}, tool_calls={len(tool_calls)}")
        return result

    def stream_response(self, messages: list[Message], tools: list[Tool]) -> EventStream:
        params = self._request_params(messages, tools, sampling_temperature(messages))
        params["stream"] = True
        params["stream_options"] = {"include_usage": True}
        logger.debug(
            f"Stream request: model={params['model']}, temperature={params['temperature']}, "
            f"messages={len(params['messages'])}, tools={len(tools)}"
        )

        async def produce(emit: Emit) -> None:
            response = await self._stream_once(params, emit)
            emit(Complete(response))

        return EventStream(produce, name="openai-stream")

    @retry(**default_retry_kwargs(_RETRYABLE_ERRORS))
    async def _stream_once(self, params: dict, emit: Emit) -> ProviderResponse:
        emitted = False
        text_content = ""
        # index -> {"id", "name", "arguments_parts"}
        tool_calls_acc: dict[int, dict] = {}
        usage: Any = None

        try:
            stream = await self._client.chat.completions.create(**params)
            async for chunk in stream:
                if getattr(chunk, "usage", None) is not None:
                    usage = chunk.usage

                choice = chunk.choices[0] if chunk.choices else None
                if choice is None or choice.delta is None:
                    continue
                delta = choice.delta

                if delta.content:
                    if not text_content:
                        emit(ContentStart())
                    emit(ContentDelta(delta.content))
                    emitted = True
                    text_content += delta.content

                for tc_delta in delta.tool_calls or []:
                    acc = tool_calls_acc.setdefault(tc_delta.index, {"id": "", "name": "", "arguments_parts": []})
                    if tc_delta.id:
                        acc["id"] = tc_delta.id
                    if tc_delta.function:
                        if tc_delta.function.name:
                            acc["name"] = tc_delta.function.name
                        if tc_delta.function.arguments:
                            acc["arguments_parts"].append(tc_delta.function.arguments)
        except _RETRYABLE_ERRORS as ex:
            if emitted:
                raise ProviderError(f"stream interrupted: {type(ex).__name__}: {ex}") from ex
            raise

        if text_content:
            emit(ContentStop())

        tool_calls = [
            ToolCall(id=acc["id"], name=acc["name"], input="".join(acc["arguments_parts"]))
            for _, acc in sorted(tool_calls_acc.items())
        ]
        return ProviderResponse(content=text_content, tool_calls=tool_calls, usage=_usage_from(usage))
