from __future__ import annotations

from loguru import logger

from termai.logging_config import LogEntry
from termai.memory.message_service import MessageService
from termai.memory.session_service import SessionService
from termai.memory.store import MemoryStore
from termai.models import Session
from termai.permission import PermissionService
from termai.pubsub import Broker


class App:
    """Owns the store and the services built on it; everything else gets them from here."""

    def __init__(self, db_path: str, *, auto_approve_permissions: bool = False):
        self.store = MemoryStore(db_path)
        self.sessions = SessionService(self.store)
        self.messages = MessageService(self.store)
        self.permissions = PermissionService(auto_approve=auto_approve_permissions)
        self.logs: Broker[LogEntry] = Broker("logs")

    def new_session(self, title: str = "") -> Session:
        """Start a session, reusing the newest one if nothing was said in it yet."""
        sessions = self.sessions.list()
        if sessions and sessions[0].message_count == 0 and not title:
            return sessions[0]
        return self.sessions.create(title)

    def delete_session(self, session_id: str) -> None:
        self.messages.delete_session_messages(session_id)
        self.sessions.delete(session_id)
        logger.info(f"Deleted session {session_id}")

    def close(self) -> None:
        for broker in (self.sessions.broker, self.messages.broker, self.permissions.broker, self.logs):
            broker.shutdown()
        self.store.close()
