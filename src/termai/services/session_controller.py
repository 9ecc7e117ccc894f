from __future__ import annotations

from termai.models import Session


class SessionController:
    def __init__(self, *, line_prefix: str, short_id_len: int = 8):
        self._line_prefix = line_prefix
        self._short_id_len = short_id_len

    def short_id(self, value: str) -> str:
        if len(value) <= self._short_id_len:
            return value
        return value[: self._short_id_len]

    def format_session_list_entry(self, session: Session, *, active_session_id: str | None) -> str:
        marker = "*" if session.id == active_session_id else " "
        title = session.title or "(untitled)"
        return (
            f"{self._line_prefix}{marker} {title} [{self.short_id(session.id)}] "
            f"(messages={session.message_count}, cost=${session.cost:.4f}, "
            f"updated={session.updated_at})"
        )

    def format_session_summary_lines(self, session: Session) -> list[str]:
        lines = [f"{self._line_prefix}Session {session.id}"]
        lines.append(f"{self._line_prefix}- Title: {session.title or '(untitled)'}")
        lines.append(
            f"{self._line_prefix}- Created: {session.created_at} | Updated: {session.updated_at}"
        )
        lines.append(f"{self._line_prefix}- Messages: {session.message_count}")
        lines.append(
            f"{self._line_prefix}- Tokens: prompt={session.prompt_tokens:,} "
            f"completion={session.completion_tokens:,} | Cost: ${session.cost:.4f}"
        )
        if session.parent_session_id:
            lines.append(f"{self._line_prefix}- Parent: {session.parent_session_id}")
        return lines

    def resolve(self, sessions: list[Session], identifier: str) -> Session | None:
        """Find a session by full id or unique id prefix."""
        exact = [s for s in sessions if s.id == identifier]
        if exact:
            return exact[0]
        matches = [s for s in sessions if s.id.startswith(identifier)]
        return matches[0] if len(matches) == 1 else None
