"""
Shared fixtures for the offline attendance tests.

Every test gets its own in-memory SQLite database, a controllable clock and
an in-memory stand-in for the remote attendance API.
"""

from datetime import datetime, timezone
from typing import Optional

import pytest

from attendance_sync.core.database import build_engine, create_db_and_tables
from attendance_sync.core.events import EventBus, EventEnvelope, EventType
from attendance_sync.core.exceptions import RemoteValidationError, TransportError
from attendance_sync.core.locks import KeyedLocks
from attendance_sync.core.offline_store import LocalAttendanceStore
from attendance_sync.core.status_cache import DailyStatusCache
from attendance_sync.models.attendance import AttendanceResponse, OfflineAttendanceRecord

DATE = "2026-10-15"


def ms(hour: int, minute: int = 0, second: int = 0, day: int = 15) -> int:
    """Epoch milliseconds for a UTC wall time in October 2026."""
    moment = datetime(2026, 10, day, hour, minute, second, tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)


def make_record(
    record_id: str,
    timestamp: int,
    attendance_type: str = "check_in",
    employee_id: str = "EMP001",
    synced: bool = False,
    scan_type: str = "face",
) -> OfflineAttendanceRecord:
    return OfflineAttendanceRecord(
        id=record_id,
        employee_id=employee_id,
        attendance_type=attendance_type,
        scan_type=scan_type,
        latitude=23.0225,
        longitude=72.5714,
        timestamp=timestamp,
        synced=synced,
    )


class FakeClock:
    def __init__(self, now: int):
        self.now = now

    def now_ms(self) -> int:
        return self.now

    def advance(self, milliseconds: int) -> None:
        self.now += milliseconds


class FakeAttendanceApi:
    """
    In-memory remote attendance API.

    `server` maps (employee id, date) to the authoritative record. Uploads are
    recorded in `uploads`; ids listed in `failing_uploads` raise TransportError
    and ids in `rejected_uploads` raise RemoteValidationError.
    """

    def __init__(self):
        self.server: dict[tuple[str, str], AttendanceResponse] = {}
        self.uploads: list[tuple[str, str]] = []
        self.attempts: list[str] = []
        self.fetches: list[tuple[str, str]] = []
        self.failing_uploads: set[str] = set()
        self.rejected_uploads: set[str] = set()
        self.failing_fetches: set[tuple[str, str]] = set()

    def set_server(
        self,
        employee_id: str,
        date: str,
        check_in: Optional[str] = None,
        check_out: Optional[str] = None,
    ) -> None:
        self.server[(employee_id, date)] = AttendanceResponse(
            id=f"srv-{employee_id}-{date}",
            employee_id=employee_id,
            check_in_time=check_in,
            check_out_time=check_out,
            status="present",
            message="ok",
        )

    async def fetch_attendance_for_date(
        self, employee_id: str, date: str
    ) -> Optional[AttendanceResponse]:
        self.fetches.append((employee_id, date))
        if (employee_id, date) in self.failing_fetches:
            raise TransportError("connection reset")
        return self.server.get((employee_id, date))

    async def _upload(self, kind: str, record_id: str) -> str:
        self.attempts.append(record_id)
        if record_id in self.failing_uploads:
            raise TransportError("timeout")
        if record_id in self.rejected_uploads:
            raise RemoteValidationError("Already checked in", 400)
        self.uploads.append((kind, record_id))
        return f"{kind} successful"

    async def upload_check_in(self, employee_id, latitude, longitude, scan_type, timestamp, record_id):
        return await self._upload("check_in", record_id)

    async def upload_check_out(self, employee_id, latitude, longitude, scan_type, timestamp, record_id):
        return await self._upload("check_out", record_id)


class EventRecorder:
    def __init__(self, bus: EventBus):
        self.events: list[EventEnvelope] = []
        for event_type in EventType:
            bus.subscribe(event_type, self.events.append)

    def of_type(self, event_type: EventType) -> list[EventEnvelope]:
        return [e for e in self.events if e.event_type == event_type]


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = build_engine("sqlite://")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return LocalAttendanceStore(engine)


@pytest.fixture
def cache(engine):
    return DailyStatusCache(engine)


@pytest.fixture
def clock():
    return FakeClock(ms(9))


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def recorder(bus):
    return EventRecorder(bus)


@pytest.fixture
def locks():
    return KeyedLocks()


@pytest.fixture
def fake_api():
    return FakeAttendanceApi()
