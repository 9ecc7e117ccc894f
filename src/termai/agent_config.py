from dataclasses import dataclass, field

from termai.llm_models import CLAUDE_37_SONNET
from termai.memory.message_service import MessageService
from termai.memory.session_service import SessionService
from termai.tool import Tool


@dataclass(frozen=True)
class ProviderSettings:
    api_key: str = ""
    enabled: bool = True
    base_url: str | None = None


@dataclass
class AgentConfig:
    sessions: SessionService
    messages: MessageService
    model: str = CLAUDE_37_SONNET
    providers: dict[str, ProviderSettings] = field(default_factory=dict)
    max_tokens: int = 5000
    title_max_tokens: int = 80
    tools: list[Tool] = field(default_factory=list)
    system_prompt: str = ""
    max_tool_result_chars: int = 40_000
