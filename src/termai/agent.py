from __future__ import annotations

import asyncio

from loguru import logger

from termai.agent_config import AgentConfig
from termai.errors import ProviderConfigError, SessionBusyError
from termai.llm_models import ModelInfo, get_model
from termai.memory.message_service import CreateMessageParams
from termai.models import Message, Role, TokenUsage
from termai.provider import ProviderConfig, create_provider
from termai.system_prompt import TITLE_PROMPT, build_coder_prompt
from termai.tool_dispatcher import ToolDispatcher
from termai.tool_registry import ToolRegistry
from termai.turn_engine import TurnEngine, TurnState


class Agent:
    def __init__(self, config: AgentConfig):
        self._model = get_model(config.model)
        settings = config.providers.get(self._model.provider)
        if settings is None or not settings.enabled:
            raise ProviderConfigError(f"provider {self._model.provider!r} is not enabled")

        self._provider = create_provider(ProviderConfig(
            api_key=settings.api_key,
            model=self._model,
            system_prompt=config.system_prompt or build_coder_prompt(),
            max_tokens=config.max_tokens,
            base_url=settings.base_url,
        ))
        self._title_provider = create_provider(ProviderConfig(
            api_key=settings.api_key,
            model=self._model,
            system_prompt=TITLE_PROMPT,
            max_tokens=config.title_max_tokens,
            base_url=settings.base_url,
        ))

        self._sessions = config.sessions
        self._messages = config.messages
        self._registry = ToolRegistry(config.tools)
        self._dispatcher = ToolDispatcher(max_tool_result_chars=config.max_tool_result_chars)
        self._engines: dict[str, TurnEngine] = {}
        self._background_tasks: set[asyncio.Task] = set()

    @property
    def model(self) -> ModelInfo:
        return self._model

    @property
    def tool_names(self) -> list[str]:
        return self._registry.names()

    def is_busy(self, session_id: str) -> bool:
        return session_id in self._engines

    def state(self, session_id: str) -> TurnState:
        engine = self._engines.get(session_id)
        return engine.state if engine is not None else TurnState.IDLE

    async def generate(self, session_id: str, content: str) -> Message:
        """Run one user turn on ``session_id`` and return the final assistant message."""
        if session_id in self._engines:
            raise SessionBusyError(session_id)

        engine = TurnEngine(
            provider=self._provider,
            registry=self._registry,
            messages=self._messages,
            dispatcher=self._dispatcher,
            on_usage=lambda sid, usage: self.track_usage(sid, self._model, usage),
        )
        self._engines[session_id] = engine
        try:
            history = self._messages.list(session_id)
            if not history:
                self._start_title_generation(session_id, content)

            user_message = self._messages.create(
                session_id, CreateMessageParams(role=Role.USER, content=content)
            )
            history.append(user_message)
            return await engine.run(session_id, history)
        finally:
            del self._engines[session_id]

    def track_usage(self, session_id: str, model: ModelInfo, usage: TokenUsage) -> None:
        session = self._sessions.get(session_id)
        session.cost += model.cost(usage)
        session.prompt_tokens += usage.input_tokens
        session.completion_tokens += usage.output_tokens
        self._sessions.save(session)

    async def wait_for_background_tasks(self) -> None:
        """Await any title generation still in flight (used on shutdown and in tests)."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

    def _start_title_generation(self, session_id: str, content: str) -> None:
        task = asyncio.create_task(self._generate_title(session_id, content), name=f"title-{session_id}")
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _generate_title(self, session_id: str, content: str) -> None:
        try:
            response = await self._title_provider.send_messages(
                [Message(id="", session_id=session_id, role=Role.USER, content=content)],
                [],
            )
            title = next((line.strip() for line in response.content.splitlines() if line.strip()), "")
            if not title:
                return
            # get and save run back to back with no await, so no usage update can interleave.
            session = self._sessions.get(session_id)
            session.title = title
            self._sessions.save(session)
            logger.debug(f"Session {session_id} titled: {title}")
        except Exception as ex:
            logger.warning(f"Title generation failed for session {session_id}: {type(ex).__name__}: {ex}")
