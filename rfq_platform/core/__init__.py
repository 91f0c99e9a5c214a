from rfq_platform.core.event_bus import (
    DomainEvent,
    EventBus,
    RfqActivityRecorded,
    get_event_bus,
    reset_event_bus_for_tests,
)

__all__ = [
    "DomainEvent",
    "EventBus",
    "RfqActivityRecorded",
    "get_event_bus",
    "reset_event_bus_for_tests",
]
