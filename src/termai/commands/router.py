from __future__ import annotations

from collections.abc import Awaitable, Callable


class CommandRouter:
    def __init__(
        self,
        *,
        on_help: Callable[[], Awaitable[None]],
        on_session: Callable[[list[str]], Awaitable[None]],
        on_logs: Callable[[list[str]], Awaitable[None]],
        on_unknown: Callable[[str], None],
    ) -> None:
        self._on_help = on_help
        self._on_session = on_session
        self._on_logs = on_logs
        self._on_unknown = on_unknown

    async def try_handle(self, user_message: str) -> bool:
        """Handle ``/`` commands locally. Returns False for text meant for the model."""
        trimmed = user_message.strip()
        if not trimmed.startswith("/"):
            return False

        command, *args = trimmed.split()
        if command == "/help":
            await self._on_help()
            return True
        if command == "/session":
            await self._on_session(args)
            return True
        if command == "/logs":
            await self._on_logs(args)
            return True

        self._on_unknown(trimmed)
        return True
