"""Entity lifecycle events.

Events are emitted after a create, update or soft delete commits:

    from memberforge.events import EventService, LoggingEventSink

    events = EventService([LoggingEventSink()])
    await events.emit(event)
"""

from memberforge.events.service import (
    EventService,
    EventSink,
    LoggingEventSink,
    RecordingEventSink,
)
from memberforge.events.types import EntityEvent, compute_changes

__all__ = [
    "EntityEvent",
    "EventService",
    "EventSink",
    "LoggingEventSink",
    "RecordingEventSink",
    "compute_changes",
]
