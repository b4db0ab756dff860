"""
Sync orchestrator.

Drives one reconciliation pass: pull unsynced records, resolve them against
the server, upload accepted punches, mark resolved records synced and prune
old local data. Only one pass runs at a time per device.

Delivery is at-least-once: a record is marked synced only after the server
accepted it or the resolver decided it needs no upload. Transport failures
leave it unsynced for the next pass.
"""

import asyncio
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi.concurrency import run_in_threadpool

from attendance_sync.api.clients.attendance_api import RemoteAttendanceApi
from attendance_sync.core.conflict_resolver import ConflictResolver
from attendance_sync.core.events import (
    EventBus,
    EventType,
    RecordResolvedEvent,
    SyncLifecycleEvent,
)
from attendance_sync.core.exceptions import RemoteValidationError, TransportError
from attendance_sync.core.locks import KeyedLocks
from attendance_sync.core.logging import get_logger
from attendance_sync.core.offline_store import LocalAttendanceStore
from attendance_sync.core.status_cache import DailyStatusCache
from attendance_sync.core.timeutils import Clock, SystemClock, cutoff_date
from attendance_sync.core.validators import DAY_MS
from attendance_sync.models.attendance import AttendanceType, OfflineAttendanceRecord
from attendance_sync.models.sync import (
    RecordOutcome,
    RecordSyncResult,
    Resolution,
    ResolutionDecision,
    SyncReport,
    SyncState,
    SyncStatusResponse,
)

logger = get_logger(__name__)

_RESOLVED_OUTCOME = {
    Resolution.SUPERSEDE: RecordOutcome.SUPERSEDED,
    Resolution.DUPLICATE: RecordOutcome.DUPLICATE,
}


class SyncOrchestrator:
    def __init__(
        self,
        store: LocalAttendanceStore,
        cache: DailyStatusCache,
        resolver: ConflictResolver,
        api: RemoteAttendanceApi,
        bus: EventBus,
        locks: Optional[KeyedLocks] = None,
        clock: Optional[Clock] = None,
        tz: ZoneInfo = ZoneInfo("UTC"),
        retention_days: int = 7,
        cache_retention_days: int = 30,
    ):
        self.store = store
        self.cache = cache
        self.resolver = resolver
        self.api = api
        self.bus = bus
        self.locks = locks or KeyedLocks()
        self.clock = clock or SystemClock()
        self.tz = tz
        self.retention_days = retention_days
        self.cache_retention_days = cache_retention_days

        self._lock = asyncio.Lock()
        self.state = SyncState.IDLE
        self.message: Optional[str] = None
        self.last_report: Optional[SyncReport] = None

    @property
    def is_syncing(self) -> bool:
        return self._lock.locked()

    def status(self, unsynced_count: int, is_online: bool) -> SyncStatusResponse:
        return SyncStatusResponse(
            state=self.state,
            message=self.message,
            unsynced_count=unsynced_count,
            is_online=is_online,
            last_report=self.last_report,
        )

    def description(self, unsynced_count: int) -> str:
        if self.state == SyncState.SYNCING:
            return "Syncing attendance records..."
        if self.state == SyncState.SUCCESS:
            return self.message or "Sync completed successfully"
        if self.state == SyncState.FAILED:
            return self.message or "Sync failed"
        if unsynced_count > 0:
            return f"{unsynced_count} attendance records pending sync"
        return "All attendance records synced"

    async def sync(self) -> SyncReport:
        """
        Run one sync pass.

        If a pass is already in flight, returns immediately with a report
        flagged `skipped` instead of starting a second one.
        """
        if self._lock.locked():
            logger.info("Sync already in progress, skipping")
            return SyncReport(started_at=datetime.utcnow(), finished_at=datetime.utcnow(), skipped=True)

        async with self._lock:
            self.state = SyncState.SYNCING
            self.message = "Syncing attendance records..."
            await self.bus.emit(EventType.SYNC_STARTED, SyncLifecycleEvent(message=self.message))

            try:
                report = await self._run()
            except Exception as e:
                self.state = SyncState.FAILED
                self.message = f"Sync failed: {e}"
                logger.error(self.message, exc_info=True)
                await self.bus.emit(EventType.SYNC_FAILED, SyncLifecycleEvent(message=self.message))
                raise

            self.last_report = report
            self.message = report.message
            unsynced = await run_in_threadpool(self.store.count_unsynced)
            if report.errors and not report.resolved:
                self.state = SyncState.FAILED
                await self.bus.emit(
                    EventType.SYNC_FAILED,
                    SyncLifecycleEvent(
                        message=report.message, unsynced_count=unsynced, failed=report.errors
                    ),
                )
            else:
                self.state = SyncState.SUCCESS
                await self.bus.emit(
                    EventType.SYNC_COMPLETED,
                    SyncLifecycleEvent(
                        message=report.message,
                        unsynced_count=unsynced,
                        uploaded=report.uploaded,
                        failed=report.errors,
                    ),
                )
            logger.info(f"Sync pass finished: {report.message}")
            return report

    async def _run(self) -> SyncReport:
        report = SyncReport(started_at=datetime.utcnow())

        records = await run_in_threadpool(self.store.list_unsynced)
        report.total = len(records)
        if records:
            logger.info(f"Starting sync of {len(records)} unsynced attendance records")
            batch = await self.resolver.resolve_pending(records, self.api)
            by_id = {record.id: record for record in records}

            for record_id, reason in batch.deferred.items():
                self._add_result(report, record_id, RecordOutcome.DEFERRED, reason)

            # A failed upload blocks the rest of its (employee, date) group so
            # a check-out is never sent ahead of its check-in.
            blocked: set[tuple[str, str]] = set()
            for decision in batch.decisions:
                report.anomalies += int(decision.anomaly)
                record = by_id[decision.record_id]
                key = (decision.employee_id, decision.date)
                if key in blocked and decision.resolution is Resolution.ACCEPT:
                    self._add_result(
                        report, record.id, RecordOutcome.DEFERRED, "Earlier punch of the day is pending"
                    )
                    continue
                outcome, detail = await self._apply(record, decision)
                if outcome is RecordOutcome.FAILED:
                    blocked.add(key)
                self._add_result(report, record.id, outcome, detail)
                await self.bus.emit(
                    EventType.RECORD_UPLOADED
                    if outcome is RecordOutcome.UPLOADED
                    else EventType.RECORD_RESOLVED,
                    RecordResolvedEvent(record_id=record.id, outcome=outcome.value, detail=detail),
                )

        await self._purge(report)
        report.finished_at = datetime.utcnow()
        return report

    async def _apply(
        self, record: OfflineAttendanceRecord, decision: ResolutionDecision
    ) -> tuple[RecordOutcome, str]:
        if decision.resolution is not Resolution.ACCEPT:
            async with self.locks.hold(decision.date):
                await run_in_threadpool(self.store.mark_synced, record.id)
                if decision.server_time is not None:
                    await self._record_on_cache(decision.date, record.attendance_type, decision.server_time)
            return _RESOLVED_OUTCOME[decision.resolution], decision.reason

        upload = (
            self.api.upload_check_in
            if record.attendance_type == AttendanceType.CHECK_IN.value
            else self.api.upload_check_out
        )
        try:
            detail = await upload(
                employee_id=record.employee_id,
                latitude=record.latitude,
                longitude=record.longitude,
                scan_type=record.scan_type,
                timestamp=record.timestamp,
                record_id=record.id,
            )
        except TransportError as e:
            logger.warning(f"Upload of {record.id} failed, keeping it for the next pass: {e}")
            return RecordOutcome.FAILED, str(e)
        except RemoteValidationError as e:
            logger.warning(f"Server rejected {record.id} ({e.status_code}): {e}")
            async with self.locks.hold(decision.date):
                await run_in_threadpool(self.store.mark_synced, record.id)
            return RecordOutcome.REJECTED, str(e)

        async with self.locks.hold(decision.date):
            await run_in_threadpool(self.store.mark_synced, record.id)
            await self._record_on_cache(decision.date, record.attendance_type, record.timestamp)
        return RecordOutcome.UPLOADED, detail or decision.reason

    async def _record_on_cache(self, date: str, attendance_type: str, time_ms: int) -> None:
        if attendance_type == AttendanceType.CHECK_IN.value:
            await run_in_threadpool(self.cache.record_check_in, date, time_ms)
        else:
            await run_in_threadpool(self.cache.record_check_out, date, time_ms)

    async def _purge(self, report: SyncReport) -> None:
        now = self.clock.now_ms()
        report.purged_records = await run_in_threadpool(
            self.store.purge_synced_older_than, now - self.retention_days * DAY_MS
        )
        report.purged_cache_rows = await run_in_threadpool(
            self.cache.purge_older_than, cutoff_date(now, self.cache_retention_days, self.tz)
        )

    @staticmethod
    def _add_result(report: SyncReport, record_id: str, outcome: RecordOutcome, detail: str) -> None:
        report.results.append(RecordSyncResult(record_id=record_id, outcome=outcome, detail=detail))
        counter = {
            RecordOutcome.UPLOADED: "uploaded",
            RecordOutcome.SUPERSEDED: "superseded",
            RecordOutcome.DUPLICATE: "duplicates",
            RecordOutcome.REJECTED: "rejected",
            RecordOutcome.FAILED: "failed",
            RecordOutcome.DEFERRED: "deferred",
        }[outcome]
        setattr(report, counter, getattr(report, counter) + 1)
