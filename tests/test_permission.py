import asyncio
import unittest

from termai.permission import CreatePermissionRequest, PermissionService


def _params(session_id: str = "s1", path: str = "/repo") -> CreatePermissionRequest:
    return CreatePermissionRequest(
        session_id=session_id,
        tool_name="bash",
        action="execute",
        description="Execute command: ls",
        path=path,
    )


class PermissionServiceTests(unittest.TestCase):
    def test_auto_approve_skips_prompting(self) -> None:
        service = PermissionService(auto_approve=True)
        sub = service.broker.subscribe()

        self.assertTrue(asyncio.run(service.request(_params())))
        self.assertEqual(0, sub.pending())

    def test_no_handler_denies(self) -> None:
        self.assertFalse(asyncio.run(PermissionService().request(_params())))

    def test_grant_and_deny(self) -> None:
        service = PermissionService()
        sub = service.broker.subscribe()

        async def ask(answer) -> bool:
            task = asyncio.create_task(service.request(_params()))
            event = await sub.get(timeout=1)
            answer(event.payload)
            return await task

        async def both():
            return await ask(service.grant), await ask(service.deny)

        granted, denied = asyncio.run(both())

        self.assertTrue(granted)
        self.assertFalse(denied)

    def test_persistent_grant_covers_same_scope_only(self) -> None:
        service = PermissionService()
        sub = service.broker.subscribe()

        async def scenario():
            task = asyncio.create_task(service.request(_params()))
            event = await sub.get(timeout=1)
            service.grant_persistent(event.payload)
            first = await task
            second = await service.request(_params())
            other = asyncio.create_task(service.request(_params(session_id="s2")))
            pending = await sub.get(timeout=1)
            service.deny(pending.payload)
            return first, second, await other

        first, second, other = asyncio.run(scenario())

        self.assertTrue(first)
        self.assertTrue(second)
        self.assertFalse(other)


if __name__ == "__main__":
    unittest.main()
