"""
Network connectivity state.

The platform reports connectivity changes; this monitor keeps the current
state and publishes an event only when it actually changes.
"""

from attendance_sync.core.events import EventBus, EventType
from attendance_sync.core.logging import get_logger

logger = get_logger(__name__)


class ConnectivityMonitor:
    def __init__(self, bus: EventBus, online: bool = False):
        self._bus = bus
        self._online = online

    @property
    def is_online(self) -> bool:
        return self._online

    def description(self) -> str:
        return "Connected" if self._online else "No internet connection"

    async def set_online(self, online: bool) -> bool:
        """
        Update the connectivity state.

        Returns True when the state changed. CONNECTIVITY_RESTORED and
        CONNECTIVITY_LOST are only published on transitions.
        """
        if online == self._online:
            return False
        self._online = online
        if online:
            logger.info("Connectivity restored")
            await self._bus.emit(EventType.CONNECTIVITY_RESTORED)
        else:
            logger.info("Connectivity lost, punches will be kept offline")
            await self._bus.emit(EventType.CONNECTIVITY_LOST)
        return True
