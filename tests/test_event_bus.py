import unittest

from rfq_platform.core import DomainEvent, EventBus, RfqActivityRecorded
from rfq_platform.observability import metrics_snapshot, reset_metrics_for_tests


def _activity(**overrides) -> RfqActivityRecorded:
    fields = {
        "tenant_id": "tenant-a",
        "rfq_id": "rfq-1",
        "rfq_number": "RFQ-2603-00001",
        "action": "rfq_published",
        "performed_by": "buyer-1",
        "sequence": 2,
    }
    fields.update(overrides)
    return RfqActivityRecorded(**fields)


class EventBusTest(unittest.TestCase):
    def setUp(self) -> None:
        reset_metrics_for_tests()

    def tearDown(self) -> None:
        reset_metrics_for_tests()

    def test_handler_execution_order_is_predictable(self) -> None:
        bus = EventBus()
        execution_trace = []

        def first_handler(_event):
            execution_trace.append("first")

        def second_handler(_event):
            execution_trace.append("second")

        bus.subscribe(RfqActivityRecorded, first_handler)
        bus.subscribe(RfqActivityRecorded, second_handler)
        bus.publish(_activity())

        self.assertEqual(execution_trace, ["first", "second"])

    def test_handlers_only_receive_their_event_type(self) -> None:
        bus = EventBus()
        received = []
        bus.subscribe(DomainEvent, received.append)

        bus.publish(_activity())

        self.assertEqual(received, [])

    def test_unsubscribe_stops_delivery(self) -> None:
        bus = EventBus()
        received = []
        bus.subscribe(RfqActivityRecorded, received.append)
        bus.publish(_activity(sequence=1))
        bus.unsubscribe(RfqActivityRecorded, received.append)
        bus.publish(_activity(sequence=2))

        self.assertEqual([event.sequence for event in received], [1])

    def test_failing_handler_is_logged_and_does_not_stop_others(self) -> None:
        bus = EventBus()
        received = []

        def broken_handler(_event):
            raise RuntimeError("notifier offline")

        bus.subscribe(RfqActivityRecorded, broken_handler)
        bus.subscribe(RfqActivityRecorded, received.append)

        with self.assertLogs("rfq_platform", level="ERROR") as captured:
            bus.publish(_activity())

        self.assertEqual(len(received), 1)
        self.assertIn("event_handler_failed", captured.output[0])

    def test_publish_counts_emitted_events(self) -> None:
        bus = EventBus()
        bus.publish(_activity())
        bus.publish(_activity(action="quote_submitted", sequence=3))

        events = metrics_snapshot()["domain_events"]
        self.assertEqual(events["emitted_total"], 2)
        self.assertEqual(events["by_type"], {"RfqActivityRecorded": 2})

    def test_event_metadata_is_normalized(self) -> None:
        event = _activity(tenant_id="  ", event_id="")

        self.assertEqual(event.tenant_id, "unknown")
        self.assertTrue(event.event_id)
        self.assertIsNotNone(event.occurred_at.tzinfo)
        self.assertEqual(event.details, {})


if __name__ == "__main__":
    unittest.main()
