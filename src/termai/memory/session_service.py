from __future__ import annotations

from uuid import uuid4

from loguru import logger

from termai.memory.store import MemoryStore
from termai.models import Session
from termai.pubsub import DEFAULT_CAPACITY, Broker, EventType, Subscription


class SessionService:
    """Session repository. Every mutation is announced on ``broker``."""

    def __init__(self, store: MemoryStore):
        self._store = store
        self.broker: Broker[Session] = Broker("sessions")

    def subscribe(self, capacity: int = DEFAULT_CAPACITY) -> Subscription[Session]:
        return self.broker.subscribe(capacity)

    def unsubscribe(self, subscription: Subscription[Session]) -> None:
        self.broker.unsubscribe(subscription)

    def create(self, title: str = "") -> Session:
        session = self._store.create_session(str(uuid4()), title)
        logger.debug(f"Session created: {session.id}")
        self.broker.publish(EventType.CREATED, session)
        return session

    def create_task_session(self, tool_call_id: str, parent_session_id: str, title: str) -> Session:
        """Create a sub-session for a task spawned by a tool call; its id is the tool call id."""
        session = self._store.create_session(tool_call_id, title, parent_session_id=parent_session_id)
        logger.debug(f"Task session created: {session.id} (parent={parent_session_id})")
        self.broker.publish(EventType.CREATED, session)
        return session

    def get(self, session_id: str) -> Session:
        return self._store.get_session_by_id(session_id)

    def list(self) -> list[Session]:
        return self._store.list_sessions()

    def save(self, session: Session) -> Session:
        saved = self._store.update_session(session)
        self.broker.publish(EventType.UPDATED, saved)
        return saved

    def delete(self, session_id: str) -> None:
        session = self._store.get_session_by_id(session_id)
        self._store.delete_session(session.id)
        logger.debug(f"Session deleted: {session.id}")
        self.broker.publish(EventType.DELETED, session)
