"""
Daily status cache.

One row per calendar date summarising the punches of that day. It backs the
duplicate-punch guard (cooldown) and the fast "today" read used by the UI.
"""

from typing import Optional

from sqlalchemy import delete
from sqlalchemy.engine import Engine
from sqlmodel import Session

from attendance_sync.core.logging import get_logger
from attendance_sync.models.attendance import DailyAttendanceCache

logger = get_logger(__name__)

COOLDOWN_PERIOD_MS = 120_000


def is_within_cooldown(
    last_punch_time: Optional[int], now_ms: int, window_ms: int = COOLDOWN_PERIOD_MS
) -> bool:
    if last_punch_time is None:
        return False
    return now_ms - last_punch_time < window_ms


def remaining_cooldown_seconds(
    last_punch_time: Optional[int], now_ms: int, window_ms: int = COOLDOWN_PERIOD_MS
) -> int:
    if last_punch_time is None:
        return 0
    remaining_ms = window_ms - (now_ms - last_punch_time)
    # Rounded up: any blocked punch reports at least one second
    return -(-remaining_ms // 1000) if remaining_ms > 0 else 0


def cooldown_message(
    last_punch_time: Optional[int], now_ms: int, window_ms: int = COOLDOWN_PERIOD_MS
) -> str:
    remaining = remaining_cooldown_seconds(last_punch_time, now_ms, window_ms)
    if remaining > 0:
        return f"Please wait {remaining} seconds before punching attendance again"
    return "You can now punch attendance"


class DailyStatusCache:
    """Repository over the attendance_cache table."""

    def __init__(self, engine: Engine, cooldown_ms: int = COOLDOWN_PERIOD_MS):
        self._engine = engine
        self.cooldown_ms = cooldown_ms

    def get_for_date(self, date: str) -> Optional[DailyAttendanceCache]:
        with Session(self._engine) as session:
            return session.get(DailyAttendanceCache, date)

    def record_check_in(self, date: str, time_ms: int) -> DailyAttendanceCache:
        """
        Mark the date as checked in.

        The earliest check-in time is kept, so re-applying a check-in does not
        change it, but last_punch_time still advances.
        """
        with Session(self._engine) as session:
            row = self._get_or_create(session, date)
            row.has_checked_in = True
            if row.check_in_time is None or time_ms < row.check_in_time:
                row.check_in_time = time_ms
            row.last_punch_time = max(row.last_punch_time, time_ms)
            return self._save(session, row)

    def record_check_out(self, date: str, time_ms: int) -> DailyAttendanceCache:
        """Mark the date as checked out, keeping the latest check-out time."""
        with Session(self._engine) as session:
            row = self._get_or_create(session, date)
            row.has_checked_out = True
            if row.check_out_time is None or time_ms > row.check_out_time:
                row.check_out_time = time_ms
            row.last_punch_time = max(row.last_punch_time, time_ms)
            return self._save(session, row)

    def is_within_cooldown(
        self, date: str, now_ms: int, window_ms: Optional[int] = None
    ) -> bool:
        row = self.get_for_date(date)
        if row is None:
            return False
        return is_within_cooldown(
            row.last_punch_time, now_ms, self.cooldown_ms if window_ms is None else window_ms
        )

    def touch(self, date: str, time_ms: int) -> DailyAttendanceCache:
        """Record an accepted punch attempt. last_punch_time never moves backwards."""
        with Session(self._engine) as session:
            row = self._get_or_create(session, date)
            row.last_punch_time = max(row.last_punch_time, time_ms)
            return self._save(session, row)

    def purge_older_than(self, cutoff_date: str) -> int:
        """Delete rows for dates strictly before `cutoff_date` (YYYY-MM-DD)."""
        with Session(self._engine) as session:
            result = session.exec(
                delete(DailyAttendanceCache).where(DailyAttendanceCache.date < cutoff_date)
            )
            session.commit()
            if result.rowcount:
                logger.info(f"Purged {result.rowcount} attendance cache rows before {cutoff_date}")
            return result.rowcount

    @staticmethod
    def _get_or_create(session: Session, date: str) -> DailyAttendanceCache:
        row = session.get(DailyAttendanceCache, date)
        if row is None:
            row = DailyAttendanceCache(date=date)
        return row

    @staticmethod
    def _save(session: Session, row: DailyAttendanceCache) -> DailyAttendanceCache:
        session.add(row)
        session.commit()
        session.refresh(row)
        return row
