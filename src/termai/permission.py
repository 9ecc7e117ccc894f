from __future__ import annotations

import asyncio
from dataclasses import dataclass
from uuid import uuid4

from loguru import logger

from termai.pubsub import Broker, EventType


@dataclass(frozen=True)
class CreatePermissionRequest:
    session_id: str
    tool_name: str
    action: str
    description: str
    path: str = ""


@dataclass(frozen=True)
class PermissionRequest:
    id: str
    session_id: str
    tool_name: str
    action: str
    description: str
    path: str = ""

    def scope(self) -> tuple[str, str, str, str]:
        return (self.session_id, self.tool_name, self.action, self.path)


class PermissionService:
    """Asks the user before a tool performs a sensitive action.

    Pending requests are published on ``broker``; whoever answers them calls
    ``grant``, ``grant_persistent`` or ``deny``.
    """

    def __init__(self, *, auto_approve: bool = False):
        self._auto_approve = auto_approve
        self.broker: Broker[PermissionRequest] = Broker("permissions")
        self._pending: dict[str, asyncio.Future[bool]] = {}
        self._session_grants: set[tuple[str, str, str, str]] = set()

    async def request(self, params: CreatePermissionRequest) -> bool:
        if self._auto_approve:
            return True

        request = PermissionRequest(
            id=str(uuid4()),
            session_id=params.session_id,
            tool_name=params.tool_name,
            action=params.action,
            description=params.description,
            path=params.path,
        )
        if request.scope() in self._session_grants:
            return True

        if self.broker.subscriber_count == 0:
            logger.warning(f"No permission handler registered; denying {request.tool_name} {request.action}")
            return False

        future: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._pending[request.id] = future
        self.broker.publish(EventType.CREATED, request)
        try:
            return await future
        finally:
            self._pending.pop(request.id, None)

    def grant(self, request: PermissionRequest) -> None:
        self._resolve(request, True)

    def grant_persistent(self, request: PermissionRequest) -> None:
        self._session_grants.add(request.scope())
        self._resolve(request, True)

    def deny(self, request: PermissionRequest) -> None:
        self._resolve(request, False)

    def _resolve(self, request: PermissionRequest, granted: bool) -> None:
        future = self._pending.get(request.id)
        if future is None or future.done():
            return
        future.set_result(granted)
