"""
Reconciliation and sync schemas.

A ResolutionDecision is the resolver's verdict for one local record; a
SyncReport is the outcome of one orchestrator pass. Progress (idle, syncing,
...) is tracked separately in SyncStatusResponse and never mixed into results.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, computed_field


class Resolution(str, Enum):
    """Resolver verdict for a local unsynced record."""

    ACCEPT = "accept"
    SUPERSEDE = "supersede"
    DUPLICATE = "duplicate"


class ResolutionDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    record_id: str
    employee_id: str
    date: str
    attendance_type: str
    timestamp: int
    resolution: Resolution
    reason: str
    anomaly: bool = False
    server_time: Optional[int] = None


class RecordOutcome(str, Enum):
    """What happened to a record during a sync pass."""

    UPLOADED = "uploaded"
    SUPERSEDED = "superseded"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"
    FAILED = "failed"
    DEFERRED = "deferred"


class RecordSyncResult(BaseModel):
    record_id: str
    outcome: RecordOutcome
    detail: str = ""


class SyncReport(BaseModel):
    """Summary of one sync pass."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    skipped: bool = False
    total: int = 0
    uploaded: int = 0
    superseded: int = 0
    duplicates: int = 0
    rejected: int = 0
    failed: int = 0
    deferred: int = 0
    anomalies: int = 0
    purged_records: int = 0
    purged_cache_rows: int = 0
    results: list[RecordSyncResult] = []

    @property
    def errors(self) -> int:
        return self.failed + self.deferred

    @property
    def resolved(self) -> int:
        return self.uploaded + self.superseded + self.duplicates + self.rejected

    @computed_field
    @property
    def message(self) -> str:
        if self.skipped:
            return "Sync already in progress"
        if self.total == 0:
            return "No attendance records to sync"
        if self.resolved:
            text = f"Successfully synced {self.resolved} attendance records"
            if self.errors:
                text += f", {self.errors} errors"
            return text
        return f"Failed to sync {self.errors} attendance records"


class SyncState(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    FAILED = "failed"


class SyncStatusResponse(BaseModel):
    """Progress signal exposed to the presentation layer."""

    state: SyncState
    message: Optional[str] = None
    unsynced_count: int = 0
    is_online: bool = False
    last_report: Optional[SyncReport] = None


class ConnectivityUpdate(BaseModel):
    online: bool
