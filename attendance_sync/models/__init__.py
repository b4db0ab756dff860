"""
Database models and schemas module.
Contains all SQLModel table definitions and Pydantic schemas.
"""

from attendance_sync.models.attendance import (
    AttendanceResponse,
    AttendanceType,
    DailyAttendanceCache,
    OfflineAttendancePublic,
    OfflineAttendanceRecord,
    PunchRequest,
    PunchResponse,
    ScanType,
    TodayAttendance,
    UnsyncedSummary,
)
from attendance_sync.models.sync import (
    ConnectivityUpdate,
    RecordOutcome,
    RecordSyncResult,
    Resolution,
    ResolutionDecision,
    SyncReport,
    SyncState,
    SyncStatusResponse,
)

__all__ = [
    "AttendanceResponse",
    "AttendanceType",
    "DailyAttendanceCache",
    "OfflineAttendancePublic",
    "OfflineAttendanceRecord",
    "PunchRequest",
    "PunchResponse",
    "ScanType",
    "TodayAttendance",
    "UnsyncedSummary",
    "ConnectivityUpdate",
    "RecordOutcome",
    "RecordSyncResult",
    "Resolution",
    "ResolutionDecision",
    "SyncReport",
    "SyncState",
    "SyncStatusResponse",
]
