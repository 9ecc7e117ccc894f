import asyncio
import unittest

from termai.mcp.mcp_manager import McpManager, _open_transport


class McpManagerTests(unittest.TestCase):
    def test_unknown_transport_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            _open_transport({"transport": "carrier-pigeon"})

    def test_unavailable_server_is_skipped(self) -> None:
        manager = McpManager({"broken": {"transport": "carrier-pigeon"}})

        async def run():
            tools = await manager.connect_all()
            await manager.close()
            return tools

        self.assertEqual([], asyncio.run(run()))

    def test_no_servers(self) -> None:
        self.assertEqual([], asyncio.run(McpManager({}).connect_all()))


if __name__ == "__main__":
    unittest.main()
