import asyncio
import unittest

from loguru import logger

from termai.logging_config import LogEntry, setup_logging
from termai.pubsub import Broker, EventType


class SetupLoggingTests(unittest.TestCase):
    def tearDown(self) -> None:
        logger.remove()

    def test_broker_consumer_publishes_entries(self) -> None:
        broker: Broker[LogEntry] = Broker("logs")
        sub = broker.subscribe()

        descriptions = setup_logging("INFO", [{"type": "broker"}], log_broker=broker)
        logger.debug("hidden")
        logger.info("tool finished")

        event = asyncio.run(sub.get(timeout=1))
        self.assertEqual(["broker (INFO)"], descriptions)
        self.assertEqual(EventType.CREATED, event.type)
        self.assertEqual("INFO", event.payload.level)
        self.assertEqual("tool finished", event.payload.message)
        self.assertEqual(0, sub.pending())

    def test_full_log_subscriber_does_not_feed_back(self) -> None:
        broker: Broker[LogEntry] = Broker("logs")
        sub = broker.subscribe(capacity=1)

        setup_logging("DEBUG", [{"type": "broker"}], log_broker=broker)
        logger.info("kept")
        logger.info("dropped for the full subscriber")

        self.assertEqual("kept", asyncio.run(sub.get(timeout=1)).payload.message)
        self.assertEqual(1, sub.dropped)

    def test_broker_consumer_skipped_without_broker(self) -> None:
        self.assertEqual([], setup_logging("INFO", [{"type": "broker"}]))

    def test_unknown_consumer_type_is_ignored(self) -> None:
        self.assertEqual(["console (WARNING)"], setup_logging("WARNING", [{"type": "carrier-pigeon"}, {"type": "console"}]))


if __name__ == "__main__":
    unittest.main()
