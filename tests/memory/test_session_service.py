import asyncio

from termai.errors import RecordNotFoundError
from termai.pubsub import EventType

from tests.memory.base import MemoryStoreTestCase


class SessionServiceTests(MemoryStoreTestCase):
    def test_create_publishes_created(self) -> None:
        sub = self._sessions.subscribe()

        session = self._sessions.create("hello")

        event = asyncio.run(sub.get(timeout=1))
        self.assertEqual(EventType.CREATED, event.type)
        self.assertEqual(session.id, event.payload.id)
        self.assertEqual("hello", event.payload.title)

    def test_create_task_session_uses_tool_call_id(self) -> None:
        parent = self._sessions.create()

        task = self._sessions.create_task_session("toolu_01", parent.id, "New Agent Session")

        self.assertEqual("toolu_01", task.id)
        self.assertEqual(parent.id, task.parent_session_id)
        self.assertEqual([parent.id], [s.id for s in self._sessions.list()])

    def test_save_publishes_updated_and_persists(self) -> None:
        session = self._sessions.create()
        sub = self._sessions.subscribe()

        session.title = "renamed"
        session.prompt_tokens = 10
        self._sessions.save(session)

        event = asyncio.run(sub.get(timeout=1))
        self.assertEqual(EventType.UPDATED, event.type)
        self.assertEqual("renamed", event.payload.title)
        self.assertEqual(10, self._sessions.get(session.id).prompt_tokens)

    def test_get_and_list_publish_nothing(self) -> None:
        session = self._sessions.create()
        sub = self._sessions.subscribe()

        self._sessions.get(session.id)
        self._sessions.list()

        self.assertEqual(0, sub.pending())

    def test_delete_publishes_deleted_with_last_state(self) -> None:
        session = self._sessions.create("bye")
        sub = self._sessions.subscribe()

        self._sessions.delete(session.id)

        event = asyncio.run(sub.get(timeout=1))
        self.assertEqual(EventType.DELETED, event.type)
        self.assertEqual("bye", event.payload.title)
        with self.assertRaises(RecordNotFoundError):
            self._sessions.get(session.id)

    def test_delete_unknown_session_raises_without_event(self) -> None:
        sub = self._sessions.subscribe()

        with self.assertRaises(RecordNotFoundError):
            self._sessions.delete("missing")

        self.assertEqual(0, sub.pending())
