from __future__ import annotations

from dataclasses import dataclass

from termai.errors import UnsupportedModelError
from termai.models import TokenUsage

PROVIDER_ANTHROPIC = "anthropic"
PROVIDER_OPENAI = "openai"
PROVIDER_GROQ = "groq"

SUPPORTED_PROVIDERS = (PROVIDER_ANTHROPIC, PROVIDER_OPENAI, PROVIDER_GROQ)


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str
    provider: str
    api_model: str
    cost_per_1m_in: float
    cost_per_1m_out: float
    cost_per_1m_in_cached: float = 0.0
    cost_per_1m_out_cached: float = 0.0
    context_window: int = 128_000

    def cost(self, usage: TokenUsage) -> float:
        return (
            self.cost_per_1m_in_cached * usage.cache_creation_tokens
            + self.cost_per_1m_out_cached * usage.cache_read_tokens
            + self.cost_per_1m_in * usage.input_tokens
            + self.cost_per_1m_out * usage.output_tokens
        ) / 1e6


CLAUDE_37_SONNET = "claude-3.7-sonnet"
CLAUDE_35_HAIKU = "claude-3.5-haiku"
GPT_4O = "gpt-4o"
GPT_4O_MINI = "gpt-4o-mini"
QWEN_QWQ = "qwen-qwq"

SUPPORTED_MODELS: dict[str, ModelInfo] = {
    CLAUDE_37_SONNET: ModelInfo(
        id=CLAUDE_37_SONNET,
        name="Claude 3.7 Sonnet",
        provider=PROVIDER_ANTHROPIC,
        api_model="claude-3-7-sonnet-latest",
        cost_per_1m_in=3.0,
        cost_per_1m_out=15.0,
        cost_per_1m_in_cached=3.75,
        cost_per_1m_out_cached=0.30,
        context_window=200_000,
    ),
    CLAUDE_35_HAIKU: ModelInfo(
        id=CLAUDE_35_HAIKU,
        name="Claude 3.5 Haiku",
        provider=PROVIDER_ANTHROPIC,
        api_model="claude-3-5-haiku-latest",
        cost_per_1m_in=0.80,
        cost_per_1m_out=4.0,
        cost_per_1m_in_cached=1.0,
        cost_per_1m_out_cached=0.08,
        context_window=200_000,
    ),
    GPT_4O: ModelInfo(
        id=GPT_4O,
        name="GPT-4o",
        provider=PROVIDER_OPENAI,
        api_model="gpt-4o",
        cost_per_1m_in=2.50,
        cost_per_1m_out=10.0,
        cost_per_1m_out_cached=1.25,
    ),
    GPT_4O_MINI: ModelInfo(
        id=GPT_4O_MINI,
        name="GPT-4o mini",
        provider=PROVIDER_OPENAI,
        api_model="gpt-4o-mini",
        cost_per_1m_in=0.15,
        cost_per_1m_out=0.60,
        cost_per_1m_out_cached=0.075,
    ),
    QWEN_QWQ: ModelInfo(
        id=QWEN_QWQ,
        name="Qwen QwQ",
        provider=PROVIDER_GROQ,
        api_model="qwen-qwq-32b",
        cost_per_1m_in=0.29,
        cost_per_1m_out=0.39,
    ),
}

# Default model per provider, in the order providers are probed for credentials.
DEFAULT_MODELS: dict[str, str] = {
    PROVIDER_ANTHROPIC: CLAUDE_37_SONNET,
    PROVIDER_OPENAI: GPT_4O,
    PROVIDER_GROQ: QWEN_QWQ,
}


def get_model(model_id: str) -> ModelInfo:
    model = SUPPORTED_MODELS.get(model_id)
    if model is None:
        raise UnsupportedModelError(model_id)
    return model
