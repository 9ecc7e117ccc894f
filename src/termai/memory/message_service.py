from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from uuid import uuid4

from termai.errors import MessageFinishedError, ToolResultMismatchError
from termai.memory.store import MemoryStore
from termai.models import Message, Role, ToolCall, ToolResult
from termai.pubsub import DEFAULT_CAPACITY, Broker, EventType, Subscription


@dataclass
class CreateMessageParams:
    role: Role
    content: str = ""
    thinking: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_results: list[ToolResult] = field(default_factory=list)


class MessageService:
    """Message repository. Every mutation is announced on ``broker``."""

    def __init__(self, store: MemoryStore):
        self._store = store
        self.broker: Broker[Message] = Broker("messages")

    def subscribe(self, capacity: int = DEFAULT_CAPACITY) -> Subscription[Message]:
        return self.broker.subscribe(capacity)

    def unsubscribe(self, subscription: Subscription[Message]) -> None:
        self.broker.unsubscribe(subscription)

    def create(self, session_id: str, params: CreateMessageParams) -> Message:
        if params.tool_results:
            self._check_tool_results(session_id, params.tool_results)

        message = self._store.create_message(
            Message(
                id=str(uuid4()),
                session_id=session_id,
                role=params.role,
                content=params.content,
                thinking=params.thinking,
                tool_calls=list(params.tool_calls),
                tool_results=list(params.tool_results),
            )
        )
        self.broker.publish(EventType.CREATED, message)
        return message

    def update(self, message: Message) -> Message:
        if self._store.get_message(message.id).finished:
            raise MessageFinishedError(message.id)
        saved = self._store.update_message(message)
        self.broker.publish(EventType.UPDATED, saved)
        return saved

    def get(self, message_id: str) -> Message:
        return self._store.get_message(message_id)

    def list(self, session_id: str) -> list[Message]:
        return self._store.list_messages_by_session(session_id)

    def delete(self, message_id: str) -> None:
        message = self._store.get_message(message_id)
        self._store.delete_message(message_id)
        self.broker.publish(EventType.DELETED, message)

    def delete_session_messages(self, session_id: str) -> None:
        messages = self._store.list_messages_by_session(session_id)
        self._store.delete_session_messages(session_id)
        for message in messages:
            self.broker.publish(EventType.DELETED, message)

    def _check_tool_results(self, session_id: str, tool_results: list[ToolResult]) -> None:
        duplicates = [tid for tid, count in Counter(r.tool_call_id for r in tool_results).items() if count > 1]
        if duplicates:
            raise ToolResultMismatchError(f"duplicate tool results for: {', '.join(sorted(duplicates))}")

        requested = {
            call.id
            for message in self._store.list_messages_by_session(session_id)
            if message.role == Role.ASSISTANT
            for call in message.tool_calls
        }
        unknown = [r.tool_call_id for r in tool_results if r.tool_call_id not in requested]
        if unknown:
            raise ToolResultMismatchError(f"tool results reference unknown tool calls: {', '.join(unknown)}")
