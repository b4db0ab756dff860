"""
Event definitions and the in-process event bus.

Events are the subscription contract between the offline core and the
presentation layer. They are categorized into:
- Punch events (recorded / rejected)
- Sync lifecycle events (started / completed / failed, per-record outcomes)
- Connectivity events
"""

import asyncio
import inspect
from collections import defaultdict
from collections.abc import Awaitable
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field

from attendance_sync.core.logging import get_logger

logger = get_logger(__name__)


class EventType(str, Enum):
    """All event types produced by the offline attendance core."""

    # Punch Events
    PUNCH_RECORDED = "attendance.punch.recorded"
    PUNCH_REJECTED = "attendance.punch.rejected"

    # Sync Events
    SYNC_STARTED = "attendance.sync.started"
    SYNC_COMPLETED = "attendance.sync.completed"
    SYNC_FAILED = "attendance.sync.failed"
    RECORD_RESOLVED = "attendance.sync.record.resolved"
    RECORD_UPLOADED = "attendance.sync.record.uploaded"

    # Connectivity Events
    CONNECTIVITY_RESTORED = "connectivity.restored"
    CONNECTIVITY_LOST = "connectivity.lost"


class EventEnvelope(BaseModel):
    """Standard envelope for all events."""

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: EventType
    timestamp: str = Field(default_factory=lambda: datetime.utcnow().isoformat())
    version: str = "1.0"
    data: dict[str, Any] = Field(default_factory=dict)


# Event Data Models


class PunchRecordedEvent(BaseModel):
    """Data for attendance.punch.recorded event."""

    record_id: str
    employee_id: str
    attendance_type: str
    scan_type: str
    timestamp: int
    date: str


class PunchRejectedEvent(BaseModel):
    """Data for attendance.punch.rejected event."""

    employee_id: str
    attendance_type: str
    reason: str
    remaining_seconds: int = 0


class RecordResolvedEvent(BaseModel):
    """Data for attendance.sync.record.resolved and attendance.sync.record.uploaded events."""

    record_id: str
    outcome: str
    detail: str = ""


class SyncLifecycleEvent(BaseModel):
    """Data for sync started/completed/failed events."""

    message: str
    unsynced_count: int = 0
    uploaded: int = 0
    failed: int = 0


Handler = Callable[[EventEnvelope], Union[None, Awaitable[None]]]


def create_event(event_type: EventType, data: Optional[BaseModel] = None) -> EventEnvelope:
    """
    Helper function to create an event envelope.

    Args:
        event_type: Type of the event
        data: Event data as a Pydantic model

    Returns:
        EventEnvelope ready for publishing
    """
    return EventEnvelope(
        event_type=event_type,
        data=data.model_dump(mode="json") if data is not None else {},
    )


class EventBus:
    """
    In-process publish/subscribe bus.

    Handlers may be plain functions or coroutines. A failing handler is
    logged and does not prevent the others from running.
    """

    def __init__(self):
        self._handlers: dict[EventType, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: Handler) -> Callable[[], None]:
        """Register a handler. Returns a callable that removes it again."""
        self._handlers[event_type].append(handler)
        logger.debug(f"Subscribed {getattr(handler, '__name__', handler)} to {event_type.value}")

        def unsubscribe() -> None:
            self.unsubscribe(event_type, handler)

        return unsubscribe

    def unsubscribe(self, event_type: EventType, handler: Handler) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def handler_count(self, event_type: EventType) -> int:
        return len(self._handlers.get(event_type, []))

    async def publish(self, event: EventEnvelope) -> None:
        for handler in list(self._handlers.get(event.event_type, [])):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    f"Handler {getattr(handler, '__name__', handler)} failed for "
                    f"{event.event_type.value}: {e}",
                    exc_info=True,
                )

    async def emit(self, event_type: EventType, data: Optional[BaseModel] = None) -> EventEnvelope:
        event = create_event(event_type, data)
        await self.publish(event)
        return event
