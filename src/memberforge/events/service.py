"""Event publishing for committed entity writes.

Publishing is fire-and-forget: a sink that fails is logged and skipped,
and the write that produced the event still succeeds.
"""

import logging
from typing import Iterable, Protocol, runtime_checkable

from memberforge.events.types import EntityEvent

logger = logging.getLogger(__name__)


@runtime_checkable
class EventSink(Protocol):
    async def publish(self, event: EntityEvent) -> None: ...


class LoggingEventSink:
    """Writes every event to the log at info level."""

    def __init__(self, logger_name: str = "memberforge.events.audit"):
        self._logger = logging.getLogger(logger_name)

    async def publish(self, event: EntityEvent) -> None:
        self._logger.info(
            "%s %s %s (tenant=%s, actor=%s, changed=%s)",
            event.entity,
            event.operation.value,
            event.business_id or event.entity_id,
            event.tenant_id,
            event.actor_id,
            ",".join(event.changed_fields) or "-",
        )


class RecordingEventSink:
    """Keeps published events in memory, in order."""

    def __init__(self) -> None:
        self.events: list[EntityEvent] = []

    async def publish(self, event: EntityEvent) -> None:
        self.events.append(event)


class EventService:
    """Delivers events to every registered sink, in registration order."""

    def __init__(self, sinks: Iterable[EventSink] = ()):
        self.sinks: list[EventSink] = list(sinks)

    def add_sink(self, sink: EventSink) -> None:
        self.sinks.append(sink)

    async def emit(self, event: EntityEvent) -> None:
        for sink in self.sinks:
            try:
                await sink.publish(event)
            except Exception as e:
                logger.error(
                    "Event sink %s failed for %s %s: %s",
                    type(sink).__name__,
                    event.entity,
                    event.operation.value,
                    e,
                )
