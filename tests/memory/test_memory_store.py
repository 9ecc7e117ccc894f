from termai.errors import RecordNotFoundError
from termai.models import Message, Role, ToolCall, ToolResult

from tests.memory.base import MemoryStoreTestCase


class MemoryStoreTests(MemoryStoreTestCase):
    def test_session_round_trip(self) -> None:
        created = self._store.create_session("s1", "first")
        loaded = self._store.get_session_by_id("s1")
        self.assertEqual(created, loaded)
        self.assertEqual("first", loaded.title)
        self.assertEqual(0, loaded.message_count)
        self.assertEqual(0.0, loaded.cost)

    def test_missing_session_raises(self) -> None:
        with self.assertRaises(RecordNotFoundError):
            self._store.get_session_by_id("nope")

    def test_list_sessions_newest_first_and_top_level_only(self) -> None:
        self._store.create_session("a", "A")
        self._store.create_session("b", "B")
        self._store.create_session("child", "task", parent_session_id="a")

        ids = [s.id for s in self._store.list_sessions()]

        self.assertEqual(["b", "a"], ids)

    def test_message_count_follows_creates_and_deletes(self) -> None:
        self._store.create_session("s1", "")
        for i in range(3):
            self._store.create_message(Message(id=f"m{i}", session_id="s1", role=Role.USER, content=str(i)))
        self.assertEqual(3, self._store.get_session_by_id("s1").message_count)

        self._store.delete_message("m1")
        self.assertEqual(2, self._store.get_session_by_id("s1").message_count)

        self._store.delete_session_messages("s1")
        self.assertEqual(0, self._store.get_session_by_id("s1").message_count)
        self.assertEqual([], self._store.list_messages_by_session("s1"))

    def test_messages_keep_insertion_order_and_payloads(self) -> None:
        self._store.create_session("s1", "")
        self._store.create_message(Message(
            id="a1",
            session_id="s1",
            role=Role.ASSISTANT,
            tool_calls=[ToolCall(id="tc1", name="ls", input='{"path": "."}')],
        ))
        self._store.create_message(Message(
            id="t1",
            session_id="s1",
            role=Role.TOOL,
            tool_results=[ToolResult(tool_call_id="tc1", content="x", is_error=True)],
        ))

        messages = self._store.list_messages_by_session("s1")

        self.assertEqual(["a1", "t1"], [m.id for m in messages])
        self.assertEqual([ToolCall(id="tc1", name="ls", input='{"path": "."}')], messages[0].tool_calls)
        self.assertEqual([ToolResult(tool_call_id="tc1", content="x", is_error=True)], messages[1].tool_results)

    def test_update_session_does_not_touch_message_count(self) -> None:
        self._store.create_session("s1", "")
        stale = self._store.get_session_by_id("s1")
        self._store.create_message(Message(id="m1", session_id="s1", role=Role.USER))

        stale.cost = 1.5
        saved = self._store.update_session(stale)

        self.assertEqual(1, saved.message_count)
        self.assertEqual(1.5, saved.cost)

    def test_deleting_parent_removes_task_sessions(self) -> None:
        self._store.create_session("p", "")
        self._store.create_session("c", "", parent_session_id="p")

        self._store.delete_session("p")

        with self.assertRaises(RecordNotFoundError):
            self._store.get_session_by_id("c")
