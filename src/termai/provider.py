from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Protocol, runtime_checkable

from termai.errors import ProviderConfigError
from termai.llm_models import PROVIDER_ANTHROPIC, PROVIDER_GROQ, PROVIDER_OPENAI, ModelInfo
from termai.models import Message
from termai.provider_events import EventStream, ProviderResponse
from termai.tool import Tool

GROQ_BASE_URL = "https://api.groq.com/openai/v1"


@dataclass(frozen=True)
class ProviderConfig:
    api_key: str
    model: ModelInfo
    system_prompt: str
    max_tokens: int = 1024
    base_url: str | None = None

    def __post_init__(self) -> None:
        if not self.api_key.strip():
            raise ProviderConfigError(f"API key is required for provider {self.model.provider!r}")
        if not self.system_prompt.strip():
            raise ProviderConfigError("system prompt is required")
        if self.max_tokens <= 0:
            raise ProviderConfigError(f"max_tokens must be positive, got {self.max_tokens}")


@runtime_checkable
class LLMProvider(Protocol):
    async def send_messages(self, messages: list[Message], tools: list[Tool]) -> ProviderResponse:
        """Single-shot call; returns once the whole response is available."""
        ...

    def stream_response(self, messages: list[Message], tools: list[Tool]) -> EventStream:
        """Start streaming a response and return the live event sequence immediately."""
        ...


def create_provider(config: ProviderConfig) -> LLMProvider:
    """Factory: create an LLMProvider for the configured model's provider."""
    name = config.model.provider
    if name == PROVIDER_ANTHROPIC:
        from termai.providers.anthropic_provider import AnthropicProvider
        return AnthropicProvider(config)
    if name == PROVIDER_OPENAI:
        from termai.providers.openai_provider import OpenAIProvider
        return OpenAIProvider(config)
    if name == PROVIDER_GROQ:
        from termai.providers.openai_provider import OpenAIProvider
        if config.base_url is None:
            config = replace(config, base_url=GROQ_BASE_URL)
        return OpenAIProvider(config)
    raise ProviderConfigError(f"Unknown provider: {name!r}. Supported: 'anthropic', 'openai', 'groq'")
