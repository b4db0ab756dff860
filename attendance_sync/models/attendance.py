"""
Attendance database models and schemas for the Offline Attendance Sync Service.

Two device-local tables back the offline subsystem:
- offline_attendance: append-only buffer of punch attempts, flagged synced/unsynced
- attendance_cache: one row per calendar date used for cooldown checks and fast reads

AttendanceResponse mirrors the authoritative record held by the remote service.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel
from sqlmodel import Field, SQLModel


class AttendanceType(str, Enum):
    """Kind of punch."""

    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"


class ScanType(str, Enum):
    """Biometric used to authorise a punch. The remote API only accepts these two."""

    FACE = "face"
    FINGER = "finger"


# Database Models


class OfflineAttendanceRecord(SQLModel, table=True):
    """
    ORM model for a locally captured punch.

    Rows are only ever mutated to flip `synced`, and are purged once synced
    and older than the retention window.
    """

    __tablename__ = "offline_attendance"

    id: str = Field(primary_key=True, max_length=64)
    employee_id: str = Field(index=True, nullable=False, max_length=64)
    attendance_type: str = Field(nullable=False, max_length=16)
    scan_type: str = Field(nullable=False, max_length=16)

    latitude: float = Field(nullable=False)
    longitude: float = Field(nullable=False)

    # Client clock, epoch milliseconds
    timestamp: int = Field(index=True, nullable=False)

    synced: bool = Field(default=False, index=True)


class DailyAttendanceCache(SQLModel, table=True):
    """
    ORM model for the per-day punch summary.

    At most one check-in and one check-out time per date; last_punch_time
    never moves backwards within a date.
    """

    __tablename__ = "attendance_cache"

    date: str = Field(primary_key=True, max_length=10)  # YYYY-MM-DD format
    last_punch_time: int = Field(default=0, nullable=False)
    has_checked_in: bool = Field(default=False)
    has_checked_out: bool = Field(default=False)
    check_in_time: Optional[int] = Field(default=None, nullable=True)
    check_out_time: Optional[int] = Field(default=None, nullable=True)


# Remote Schemas


class AttendanceResponse(BaseModel):
    """Attendance record as returned by the remote attendance API."""

    id: str
    employee_id: str
    check_in_time: Optional[str] = None
    check_out_time: Optional[str] = None
    status: str = ""
    message: str = ""


# Request Schemas


class PunchRequest(SQLModel):
    """Schema for a check-in or check-out attempt."""

    employee_id: str = Field(min_length=1, max_length=64)
    attendance_type: AttendanceType
    scan_type: str = Field(max_length=16)
    latitude: float
    longitude: float


# Response Schemas


class OfflineAttendancePublic(SQLModel):
    """Schema for offline record responses."""

    id: str
    employee_id: str
    attendance_type: str
    scan_type: str
    latitude: float
    longitude: float
    timestamp: int
    synced: bool


class TodayAttendance(BaseModel):
    """Today's attendance status as seen from the local cache."""

    date: str
    has_checked_in: bool = False
    has_checked_out: bool = False
    check_in_time: Optional[str] = None
    check_out_time: Optional[str] = None
    next_attendance_type: AttendanceType = AttendanceType.CHECK_IN
    cooldown_remaining_seconds: int = 0


class PunchResponse(BaseModel):
    """Response for an accepted punch."""

    record: OfflineAttendancePublic
    today: TodayAttendance
    message: str


class UnsyncedSummary(BaseModel):
    """Pending records waiting for the next sync pass."""

    count: int
    records: list[OfflineAttendancePublic] = []
