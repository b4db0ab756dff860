"""
Event handlers that keep offline punches flowing to the server.

- connectivity.restored: start a sync pass right away
- attendance.punch.recorded: upload the fresh punch if the device is online
- attendance.sync.completed / failed: log the outcome for diagnostics
"""

from attendance_sync.core.events import EventBus, EventEnvelope, EventType
from attendance_sync.core.logging import get_logger
from attendance_sync.core.scheduler import SyncScheduler

logger = get_logger(__name__)


def register_sync_handlers(bus: EventBus, scheduler: SyncScheduler) -> None:
    """Subscribe the sync triggers to the bus."""

    def handle_connectivity_restored(event: EventEnvelope) -> None:
        scheduler.trigger("connectivity restored")

    def handle_punch_recorded(event: EventEnvelope) -> None:
        record_id = event.data.get("record_id")
        scheduler.trigger(f"punch {record_id} recorded")

    def handle_sync_completed(event: EventEnvelope) -> None:
        logger.info(
            f"Sync completed: {event.data.get('message')} "
            f"({event.data.get('unsynced_count', 0)} still pending)"
        )

    def handle_sync_failed(event: EventEnvelope) -> None:
        logger.warning(f"Sync failed: {event.data.get('message')}")

    bus.subscribe(EventType.CONNECTIVITY_RESTORED, handle_connectivity_restored)
    bus.subscribe(EventType.PUNCH_RECORDED, handle_punch_recorded)
    bus.subscribe(EventType.SYNC_COMPLETED, handle_sync_completed)
    bus.subscribe(EventType.SYNC_FAILED, handle_sync_failed)
    logger.info("Sync event handlers registered")
