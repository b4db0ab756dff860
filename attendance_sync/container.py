"""
Explicit wiring of the offline attendance core.

Everything is constructed here from Settings and owned by the Container;
the FastAPI app keeps a single instance on `app.state.container`.
"""

from dataclasses import dataclass
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.engine import Engine

from attendance_sync.api.clients.attendance_api import AttendanceApiClient, RemoteAttendanceApi
from attendance_sync.core.attendance_service import AttendanceService
from attendance_sync.core.config import Settings
from attendance_sync.core.conflict_resolver import ConflictResolver
from attendance_sync.core.connectivity import ConnectivityMonitor
from attendance_sync.core.database import build_engine, create_db_and_tables
from attendance_sync.core.events import EventBus
from attendance_sync.core.handlers import register_sync_handlers
from attendance_sync.core.locks import KeyedLocks
from attendance_sync.core.offline_store import LocalAttendanceStore
from attendance_sync.core.retry import RetryPolicy
from attendance_sync.core.scheduler import SyncScheduler
from attendance_sync.core.status_cache import DailyStatusCache
from attendance_sync.core.sync_orchestrator import SyncOrchestrator
from attendance_sync.core.timeutils import Clock, SystemClock


@dataclass
class Container:
    settings: Settings
    engine: Engine
    bus: EventBus
    store: LocalAttendanceStore
    cache: DailyStatusCache
    api: RemoteAttendanceApi
    resolver: ConflictResolver
    connectivity: ConnectivityMonitor
    attendance: AttendanceService
    orchestrator: SyncOrchestrator
    scheduler: SyncScheduler

    def dispose(self) -> None:
        self.engine.dispose()


def build_container(
    settings: Settings,
    *,
    engine: Optional[Engine] = None,
    api: Optional[RemoteAttendanceApi] = None,
    clock: Optional[Clock] = None,
    online: bool = False,
) -> Container:
    """
    Build the object graph.

    `engine`, `api` and `clock` can be supplied to swap the SQLite file, the
    remote service or the wall clock (tests do all three).
    """
    tz = ZoneInfo(settings.TIMEZONE)
    clock = clock or SystemClock()

    if engine is None:
        engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    create_db_and_tables(engine)

    if api is None:
        api = AttendanceApiClient(
            base_url=settings.REMOTE_API_BASE_URL,
            timeout=settings.REMOTE_API_TIMEOUT,
            token=settings.REMOTE_API_TOKEN,
            retry_policy=RetryPolicy(
                max_attempts=settings.RETRY_MAX_ATTEMPTS,
                initial_delay=settings.RETRY_INITIAL_DELAY,
                max_delay=settings.RETRY_MAX_DELAY,
                backoff_multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
            ),
        )

    bus = EventBus()
    locks = KeyedLocks()
    store = LocalAttendanceStore(engine)
    cache = DailyStatusCache(engine, cooldown_ms=settings.PUNCH_COOLDOWN_MS)
    resolver = ConflictResolver(cooldown_ms=settings.PUNCH_COOLDOWN_MS, tz=tz)
    connectivity = ConnectivityMonitor(bus, online=online)

    attendance = AttendanceService(
        store,
        cache,
        bus,
        locks=locks,
        clock=clock,
        tz=tz,
        cooldown_ms=settings.PUNCH_COOLDOWN_MS,
        max_record_age_days=settings.MAX_RECORD_AGE_DAYS,
    )
    orchestrator = SyncOrchestrator(
        store,
        cache,
        resolver,
        api,
        bus,
        locks=locks,
        clock=clock,
        tz=tz,
        retention_days=settings.OFFLINE_RETENTION_DAYS,
        cache_retention_days=settings.CACHE_RETENTION_DAYS,
    )
    scheduler = SyncScheduler(orchestrator, connectivity, settings.SYNC_INTERVAL_SECONDS)
    register_sync_handlers(bus, scheduler)

    return Container(
        settings=settings,
        engine=engine,
        bus=bus,
        store=store,
        cache=cache,
        api=api,
        resolver=resolver,
        connectivity=connectivity,
        attendance=attendance,
        orchestrator=orchestrator,
        scheduler=scheduler,
    )
