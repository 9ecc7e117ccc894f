import asyncio
import unittest

from termai.permission import PermissionService
from termai.pubsub import EventType
from termai.tool import current_session_id
from termai.tools.bash_tool import BashTool


class BashToolTests(unittest.TestCase):
    def test_runs_command_when_auto_approved(self) -> None:
        tool = BashTool(PermissionService(auto_approve=True))

        result = asyncio.run(tool.execute({"command": "echo hello"}))

        self.assertFalse(result.is_error)
        self.assertEqual("hello", result.content)

    def test_non_zero_exit_is_error(self) -> None:
        tool = BashTool(PermissionService(auto_approve=True))

        result = asyncio.run(tool.execute({"command": "exit 3"}))

        self.assertTrue(result.is_error)
        self.assertIn("[exit code 3]", result.content)

    def test_denied_without_permission_handler(self) -> None:
        tool = BashTool(PermissionService())

        result = asyncio.run(tool.execute({"command": "echo never"}))

        self.assertTrue(result.is_error)
        self.assertEqual("permission denied", result.content)

    def test_permission_request_carries_session_and_command(self) -> None:
        permissions = PermissionService()
        sub = permissions.broker.subscribe()
        tool = BashTool(permissions)

        async def run():
            current_session_id.set("s1")
            task = asyncio.create_task(tool.execute({"command": "echo granted"}))
            event = await sub.get(timeout=1)
            permissions.grant(event.payload)
            return event, await task

        event, result = asyncio.run(run())

        self.assertEqual(EventType.CREATED, event.type)
        self.assertEqual("s1", event.payload.session_id)
        self.assertEqual("bash", event.payload.tool_name)
        self.assertIn("echo granted", event.payload.description)
        self.assertEqual("granted", result.content)


if __name__ == "__main__":
    unittest.main()
