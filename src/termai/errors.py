from __future__ import annotations


class TermaiError(Exception):
    """Base class for errors raised by the agent runtime."""


class ProviderError(TermaiError):
    """The LLM provider failed while producing a response."""


class ProviderConfigError(TermaiError):
    """A provider was configured with missing or invalid settings."""


class UnsupportedModelError(TermaiError):
    def __init__(self, model_id: str):
        super().__init__(f"model not supported: {model_id}")
        self.model_id = model_id


class SessionBusyError(TermaiError):
    def __init__(self, session_id: str):
        super().__init__(f"session is already generating a response: {session_id}")
        self.session_id = session_id


class RecordNotFoundError(TermaiError):
    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} not found: {record_id}")
        self.kind = kind
        self.record_id = record_id


class ToolResultMismatchError(TermaiError):
    """A tool message references tool calls that were never requested."""


class MessageFinishedError(TermaiError):
    def __init__(self, message_id: str):
        super().__init__(f"message is finished and can no longer be updated: {message_id}")
        self.message_id = message_id
