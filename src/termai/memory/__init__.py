from termai.memory.message_service import CreateMessageParams, MessageService
from termai.memory.session_service import SessionService
from termai.memory.store import MemoryStore

__all__ = [
    "CreateMessageParams",
    "MemoryStore",
    "MessageService",
    "SessionService",
]
