"""
Punch recording service.

Every check-in or check-out attempt ends in exactly one of:
- a persisted, unsynced offline record (picked up by the next sync pass)
- a ValidationError / CooldownViolationError explaining the rejection

Blocking persistence calls run in the threadpool so request handlers never
wait on SQLite directly.
"""

from dataclasses import dataclass
from typing import Callable, Optional
from uuid import uuid4
from zoneinfo import ZoneInfo

from fastapi.concurrency import run_in_threadpool

from attendance_sync.core.events import (
    EventBus,
    EventType,
    PunchRecordedEvent,
    PunchRejectedEvent,
)
from attendance_sync.core.exceptions import CooldownViolationError, ValidationError
from attendance_sync.core.locks import KeyedLocks
from attendance_sync.core.logging import get_logger
from attendance_sync.core.offline_store import LocalAttendanceStore
from attendance_sync.core.status_cache import (
    COOLDOWN_PERIOD_MS,
    DailyStatusCache,
    cooldown_message,
    is_within_cooldown,
    remaining_cooldown_seconds,
)
from attendance_sync.core.timeutils import Clock, SystemClock, date_for_timestamp, format_time
from attendance_sync.core.validators import normalize_scan_type, validate_punch
from attendance_sync.models.attendance import (
    AttendanceType,
    DailyAttendanceCache,
    OfflineAttendanceRecord,
    TodayAttendance,
)

logger = get_logger(__name__)


def punch_sequence_error(
    row: Optional[DailyAttendanceCache], attendance_type: str
) -> Optional[str]:
    """
    Why `attendance_type` cannot follow the punches already cached for the day.

    A day is one check-in followed by one check-out. Returns None when the
    punch is the expected next one.
    """
    checked_in = row is not None and row.has_checked_in
    checked_out = row is not None and row.has_checked_out
    if checked_in and checked_out:
        return "You have already completed attendance for today"
    if attendance_type == AttendanceType.CHECK_IN.value and checked_in:
        return "You have already checked in today. Please check out instead."
    if attendance_type == AttendanceType.CHECK_OUT.value and not checked_in:
        return "You need to check in first before checking out."
    return None


@dataclass(frozen=True)
class PunchResult:
    record: OfflineAttendanceRecord
    today: TodayAttendance


class AttendanceService:
    def __init__(
        self,
        store: LocalAttendanceStore,
        cache: DailyStatusCache,
        bus: EventBus,
        locks: Optional[KeyedLocks] = None,
        clock: Optional[Clock] = None,
        tz: ZoneInfo = ZoneInfo("UTC"),
        cooldown_ms: int = COOLDOWN_PERIOD_MS,
        max_record_age_days: int = 7,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
    ):
        self.store = store
        self.cache = cache
        self.bus = bus
        self.locks = locks or KeyedLocks()
        self.clock = clock or SystemClock()
        self.tz = tz
        self.cooldown_ms = cooldown_ms
        self.max_record_age_days = max_record_age_days
        self._new_id = id_factory

    async def record_punch(
        self,
        *,
        employee_id: str,
        attendance_type: str,
        scan_type: str,
        latitude: float,
        longitude: float,
        timestamp: Optional[int] = None,
    ) -> PunchResult:
        """
        Validate and store a punch.

        Raises:
            ValidationError: the punch is malformed
            CooldownViolationError: the punch falls inside the cooldown window
                of the last accepted punch of the same date
        """
        now = self.clock.now_ms()
        punch_time = now if timestamp is None else timestamp
        attendance_type = getattr(attendance_type, "value", attendance_type)

        try:
            validate_punch(
                employee_id=employee_id,
                attendance_type=attendance_type,
                scan_type=scan_type,
                latitude=latitude,
                longitude=longitude,
                timestamp=punch_time,
                now_ms=now,
                max_age_days=self.max_record_age_days,
            )
        except ValidationError as e:
            logger.warning(f"Rejected {attendance_type} for employee {employee_id}: {e}")
            await self.bus.emit(
                EventType.PUNCH_REJECTED,
                PunchRejectedEvent(
                    employee_id=employee_id or "",
                    attendance_type=str(attendance_type),
                    reason=str(e),
                ),
            )
            raise

        date = date_for_timestamp(punch_time, self.tz)
        async with self.locks.hold(date):
            row = await run_in_threadpool(self.cache.get_for_date, date)
            last_punch = row.last_punch_time if row else None
            if is_within_cooldown(last_punch, punch_time, self.cooldown_ms):
                remaining = remaining_cooldown_seconds(last_punch, punch_time, self.cooldown_ms)
                message = cooldown_message(last_punch, punch_time, self.cooldown_ms)
                logger.info(f"Duplicate punch blocked for employee {employee_id}: {message}")
                await self.bus.emit(
                    EventType.PUNCH_REJECTED,
                    PunchRejectedEvent(
                        employee_id=employee_id,
                        attendance_type=attendance_type,
                        reason=message,
                        remaining_seconds=remaining,
                    ),
                )
                raise CooldownViolationError(message, remaining)

            sequence_error = punch_sequence_error(row, attendance_type)
            if sequence_error:
                logger.info(f"Out of sequence punch for employee {employee_id}: {sequence_error}")
                await self.bus.emit(
                    EventType.PUNCH_REJECTED,
                    PunchRejectedEvent(
                        employee_id=employee_id,
                        attendance_type=attendance_type,
                        reason=sequence_error,
                    ),
                )
                raise ValidationError(sequence_error)

            await run_in_threadpool(self.cache.touch, date, punch_time)
            record = await run_in_threadpool(
                self.store.insert,
                OfflineAttendanceRecord(
                    id=self._new_id(),
                    employee_id=employee_id.strip(),
                    attendance_type=attendance_type,
                    scan_type=normalize_scan_type(scan_type).value,
                    latitude=latitude,
                    longitude=longitude,
                    timestamp=punch_time,
                    synced=False,
                ),
            )
            if attendance_type == AttendanceType.CHECK_IN.value:
                row = await run_in_threadpool(self.cache.record_check_in, date, punch_time)
            else:
                row = await run_in_threadpool(self.cache.record_check_out, date, punch_time)

        logger.info(
            f"Recorded {attendance_type} {record.id} for employee {record.employee_id} on {date}"
        )
        await self.bus.emit(
            EventType.PUNCH_RECORDED,
            PunchRecordedEvent(
                record_id=record.id,
                employee_id=record.employee_id,
                attendance_type=record.attendance_type,
                scan_type=record.scan_type,
                timestamp=record.timestamp,
                date=date,
            ),
        )
        return PunchResult(record=record, today=self._to_today(date, row, now))

    async def get_today(self, now: Optional[int] = None) -> TodayAttendance:
        """Today's status from the local cache."""
        now = self.clock.now_ms() if now is None else now
        date = date_for_timestamp(now, self.tz)
        row = await run_in_threadpool(self.cache.get_for_date, date)
        return self._to_today(date, row, now)

    async def can_punch(self, now: Optional[int] = None) -> bool:
        now = self.clock.now_ms() if now is None else now
        date = date_for_timestamp(now, self.tz)
        return not await run_in_threadpool(self.cache.is_within_cooldown, date, now, self.cooldown_ms)

    async def unsynced(self) -> list[OfflineAttendanceRecord]:
        return await run_in_threadpool(self.store.list_unsynced)

    async def get_record(self, record_id: str) -> Optional[OfflineAttendanceRecord]:
        return await run_in_threadpool(self.store.get, record_id)

    async def unsynced_count(self) -> int:
        return await run_in_threadpool(self.store.count_unsynced)

    def _to_today(
        self, date: str, row: Optional[DailyAttendanceCache], now: int
    ) -> TodayAttendance:
        if row is None:
            return TodayAttendance(date=date)
        checked_in_only = row.has_checked_in and not row.has_checked_out
        return TodayAttendance(
            date=date,
            has_checked_in=row.has_checked_in,
            has_checked_out=row.has_checked_out,
            check_in_time=format_time(row.check_in_time, self.tz),
            check_out_time=format_time(row.check_out_time, self.tz),
            next_attendance_type=(
                AttendanceType.CHECK_OUT if checked_in_only else AttendanceType.CHECK_IN
            ),
            cooldown_remaining_seconds=remaining_cooldown_seconds(
                row.last_punch_time, now, self.cooldown_ms
            ),
        )
