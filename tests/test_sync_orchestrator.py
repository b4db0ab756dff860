"""
Tests for the sync orchestrator: uploads, resolution outcomes, failure
handling and the single-pass guarantee.
"""

import asyncio

import httpx
import pytest
from conftest import DATE, FakeAttendanceApi, make_record, ms

from attendance_sync.api.clients.attendance_api import AttendanceApiClient
from attendance_sync.core.conflict_resolver import ConflictResolver
from attendance_sync.core.events import EventType
from attendance_sync.core.sync_orchestrator import SyncOrchestrator
from attendance_sync.models.sync import RecordOutcome, SyncState


class BlockingAttendanceApi(FakeAttendanceApi):
    """Fake whose server lookups wait until released."""

    def __init__(self):
        super().__init__()
        self.release = asyncio.Event()

    async def fetch_attendance_for_date(self, employee_id, date):
        await self.release.wait()
        return await super().fetch_attendance_for_date(employee_id, date)


@pytest.fixture
def make_orchestrator(store, cache, bus, locks, clock):
    def factory(api):
        return SyncOrchestrator(
            store, cache, ConflictResolver(cooldown_ms=120_000), api, bus, locks=locks, clock=clock
        )

    return factory


@pytest.fixture
def orchestrator(make_orchestrator, fake_api):
    return make_orchestrator(fake_api)


def outcomes(report):
    return {r.record_id: r.outcome for r in report.results}


@pytest.mark.asyncio
async def test_accepted_record_is_uploaded_and_marked_synced(orchestrator, store, cache, fake_api):
    """Test an offline check-in with no server record reaches the server."""
    # Arrange
    store.insert(make_record("a", ms(8)))

    # Act
    report = await orchestrator.sync()

    # Assert
    assert fake_api.uploads == [("check_in", "a")]
    assert store.count_unsynced() == 0
    assert report.uploaded == 1
    assert report.message == "Successfully synced 1 attendance records"
    assert cache.get_for_date(DATE).check_in_time == ms(8)
    assert orchestrator.state is SyncState.SUCCESS


@pytest.mark.asyncio
async def test_check_out_uses_check_out_endpoint(orchestrator, store, fake_api):
    store.insert(make_record("a", ms(8)))
    store.insert(make_record("b", ms(17), "check_out"))

    await orchestrator.sync()

    assert fake_api.uploads == [("check_in", "a"), ("check_out", "b")]


@pytest.mark.asyncio
async def test_superseded_and_duplicate_records_are_not_uploaded(orchestrator, store, cache, fake_api):
    # Arrange
    fake_api.set_server("EMP001", DATE, check_in="2026-10-15 08:00:00")
    store.insert(make_record("dup", ms(8, 0, 30)))
    store.insert(make_record("late", ms(8, 30)))

    # Act
    report = await orchestrator.sync()

    # Assert
    assert fake_api.uploads == []
    assert outcomes(report) == {"dup": RecordOutcome.DUPLICATE, "late": RecordOutcome.SUPERSEDED}
    assert store.count_unsynced() == 0
    assert cache.get_for_date(DATE).check_in_time == ms(8)


@pytest.mark.asyncio
async def test_transport_failure_keeps_record_unsynced(orchestrator, store, fake_api, recorder):
    """Test a failed upload is retried on the next pass."""
    store.insert(make_record("a", ms(8)))
    fake_api.failing_uploads.add("a")

    report = await orchestrator.sync()

    assert report.failed == 1
    assert store.count_unsynced() == 1
    assert orchestrator.state is SyncState.FAILED
    assert report.message == "Failed to sync 1 attendance records"
    assert len(recorder.of_type(EventType.SYNC_FAILED)) == 1

    fake_api.failing_uploads.clear()
    retry = await orchestrator.sync()

    assert retry.uploaded == 1
    assert store.count_unsynced() == 0
    assert fake_api.uploads == [("check_in", "a")]


@pytest.mark.asyncio
async def test_failed_check_in_defers_check_out_of_same_day(orchestrator, store, fake_api):
    store.insert(make_record("in", ms(8)))
    store.insert(make_record("out", ms(17), "check_out"))
    store.insert(make_record("other", ms(8), employee_id="EMP002"))
    fake_api.failing_uploads.add("in")

    report = await orchestrator.sync()

    assert outcomes(report) == {
        "in": RecordOutcome.FAILED,
        "out": RecordOutcome.DEFERRED,
        "other": RecordOutcome.UPLOADED,
    }
    assert {r.id for r in store.list_unsynced()} == {"in", "out"}
    assert report.message == "Successfully synced 1 attendance records, 2 errors"
    assert orchestrator.state is SyncState.SUCCESS


@pytest.mark.asyncio
async def test_server_rejection_marks_record_synced(orchestrator, store, fake_api):
    store.insert(make_record("a", ms(8)))
    fake_api.rejected_uploads.add("a")

    report = await orchestrator.sync()

    assert report.rejected == 1
    assert store.count_unsynced() == 0


@pytest.mark.asyncio
async def test_failed_lookup_defers_group(orchestrator, store, fake_api):
    store.insert(make_record("a", ms(8)))
    fake_api.failing_fetches.add(("EMP001", DATE))

    report = await orchestrator.sync()

    assert report.deferred == 1
    assert fake_api.uploads == []
    assert store.count_unsynced() == 1


@pytest.mark.asyncio
async def test_empty_store_reports_nothing_to_sync(orchestrator):
    report = await orchestrator.sync()

    assert report.total == 0
    assert report.message == "No attendance records to sync"
    assert orchestrator.state is SyncState.SUCCESS


@pytest.mark.asyncio
async def test_overlapping_sync_is_skipped(make_orchestrator, store):
    """Test a second pass requested mid-flight does not start."""
    # Arrange
    api = BlockingAttendanceApi()
    orchestrator = make_orchestrator(api)
    store.insert(make_record("a", ms(8)))

    # Act
    first = asyncio.create_task(orchestrator.sync())
    while not orchestrator.is_syncing:
        await asyncio.sleep(0)
    second = await orchestrator.sync()
    api.release.set()
    report = await first

    # Assert
    assert second.skipped is True
    assert second.message == "Sync already in progress"
    assert report.uploaded == 1
    assert api.uploads == [("check_in", "a")]


@pytest.mark.asyncio
async def test_sync_emits_lifecycle_and_record_events(orchestrator, store, fake_api, recorder):
    fake_api.set_server("EMP001", DATE, check_in="2026-10-15 07:00:00")
    store.insert(make_record("a", ms(8)))
    store.insert(make_record("b", ms(17), "check_out"))

    await orchestrator.sync()

    assert len(recorder.of_type(EventType.SYNC_STARTED)) == 1
    assert [e.data["record_id"] for e in recorder.of_type(EventType.RECORD_RESOLVED)] == ["a"]
    assert [e.data["record_id"] for e in recorder.of_type(EventType.RECORD_UPLOADED)] == ["b"]
    completed = recorder.of_type(EventType.SYNC_COMPLETED)
    assert len(completed) == 1
    assert completed[0].data["uploaded"] == 1
    assert completed[0].data["unsynced_count"] == 0


@pytest.mark.asyncio
async def test_sync_purges_expired_local_data(orchestrator, store, cache):
    store.insert(make_record("old", ms(8, day=1), synced=True))
    store.insert(make_record("recent", ms(8, day=14), synced=True))
    cache.touch("2026-09-01", ms(8, day=1) - 30 * 86_400_000)
    cache.touch(DATE, ms(8))

    report = await orchestrator.sync()

    assert report.purged_records == 1
    assert report.purged_cache_rows == 1
    assert store.get("old") is None
    assert store.get("recent") is not None
    assert cache.get_for_date(DATE) is not None


@pytest.mark.asyncio
async def test_status_reflects_last_pass(orchestrator, store):
    store.insert(make_record("a", ms(8)))
    assert orchestrator.description(1) == "1 attendance records pending sync"

    await orchestrator.sync()
    status = orchestrator.status(unsynced_count=0, is_online=True)

    assert status.state is SyncState.SUCCESS
    assert status.last_report.uploaded == 1
    assert status.message == "Successfully synced 1 attendance records"


@pytest.mark.asyncio
async def test_malformed_server_record_does_not_abort_pass(make_orchestrator, store):
    """Test one unreadable server record only holds back that employee's punches."""
    # Arrange
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET" and request.url.params["employee_id"] == "EMP001":
            return httpx.Response(200, json={"id": "1", "employee_id": "EMP001", "check_in_time": 1})
        if request.method == "GET":
            return httpx.Response(404, json={"detail": "Not found"})
        return httpx.Response(201, json={"message": "Check-in successful"})

    api = AttendanceApiClient("https://hrms.example.com/api", transport=httpx.MockTransport(handler))
    orchestrator = make_orchestrator(api)
    store.insert(make_record("a", ms(8)))
    store.insert(make_record("b", ms(8), employee_id="EMP002"))

    # Act
    report = await orchestrator.sync()

    # Assert
    assert outcomes(report) == {"a": RecordOutcome.DEFERRED, "b": RecordOutcome.UPLOADED}
    assert [r.id for r in store.list_unsynced()] == ["a"]
    assert orchestrator.state is SyncState.SUCCESS


@pytest.mark.asyncio
async def test_rejected_record_is_marked_under_date_lock(orchestrator, store, fake_api, locks):
    store.insert(make_record("a", ms(8)))
    fake_api.rejected_uploads.add("a")

    async with locks.hold(DATE):
        task = asyncio.create_task(orchestrator.sync())
        while not fake_api.attempts:
            await asyncio.sleep(0.01)
        await asyncio.sleep(0.05)
        assert store.count_unsynced() == 1

    report = await asyncio.wait_for(task, timeout=5)

    assert report.rejected == 1
    assert store.count_unsynced() == 0
