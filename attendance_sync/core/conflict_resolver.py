"""
Conflict resolution between offline punches and the authoritative server record.

Unsynced local records are grouped by (employee id, calendar date). Each group
is compared with the server's attendance for that date and every record gets
one of three verdicts:

- ACCEPT: upload it as a new punch
- SUPERSEDE: the server already holds the authoritative value; discard the local one
- DUPLICATE: the server already knows this physical event; discard without upload

For a given event type the server keeps the earliest check-in and the latest
check-out of the day. A local record within the cooldown window of the server
time (ties included) is a duplicate. Otherwise the local record is superseded
when the server value already wins, and accepted when the local one would
replace it (an earlier check-in or a later check-out that was captured
offline). The server remains the final arbiter of anything accepted.

Resolution is a pure function of (local records, server snapshot), so a retry
after a partial failure reaches the same verdicts.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Optional
from zoneinfo import ZoneInfo

from attendance_sync.api.clients.attendance_api import RemoteAttendanceApi
from attendance_sync.core.exceptions import RemoteValidationError, TransportError
from attendance_sync.core.logging import get_logger
from attendance_sync.core.status_cache import COOLDOWN_PERIOD_MS
from attendance_sync.core.timeutils import date_for_timestamp, parse_server_time
from attendance_sync.models.attendance import (
    AttendanceResponse,
    AttendanceType,
    OfflineAttendanceRecord,
)
from attendance_sync.models.sync import Resolution, ResolutionDecision

logger = get_logger(__name__)

GroupKey = tuple[str, str]

# Check-in sorts before check-out when timestamps are equal
_TYPE_ORDER = {AttendanceType.CHECK_IN.value: 0, AttendanceType.CHECK_OUT.value: 1}


def replay_order(record: OfflineAttendanceRecord) -> tuple[int, int, str]:
    return (record.timestamp, _TYPE_ORDER.get(record.attendance_type, 2), record.id)


@dataclass
class ResolutionBatch:
    """Verdicts for one pass plus the records whose group could not be resolved."""

    decisions: list[ResolutionDecision] = field(default_factory=list)
    deferred: dict[str, str] = field(default_factory=dict)  # record id -> reason


class ConflictResolver:
    def __init__(self, cooldown_ms: int = COOLDOWN_PERIOD_MS, tz: ZoneInfo = ZoneInfo("UTC")):
        self.cooldown_ms = cooldown_ms
        self.tz = tz

    def group_key(self, record: OfflineAttendanceRecord) -> GroupKey:
        return (record.employee_id, date_for_timestamp(record.timestamp, self.tz))

    def group_records(
        self, records: Iterable[OfflineAttendanceRecord]
    ) -> dict[GroupKey, list[OfflineAttendanceRecord]]:
        """Group records by (employee id, date); groups and members in replay order."""
        groups: dict[GroupKey, list[OfflineAttendanceRecord]] = {}
        for record in sorted(records, key=replay_order):
            groups.setdefault(self.group_key(record), []).append(record)
        return groups

    def _server_time(
        self, server: Optional[AttendanceResponse], attendance_type: str, date: str
    ) -> Optional[int]:
        """Server time for the event type, ignoring values that fall on another date."""
        if server is None:
            return None
        raw = (
            server.check_in_time
            if attendance_type == AttendanceType.CHECK_IN.value
            else server.check_out_time
        )
        parsed = parse_server_time(raw, self.tz)
        if parsed is None or date_for_timestamp(parsed, self.tz) != date:
            return None
        return parsed

    def resolve_group(
        self,
        key: GroupKey,
        records: Sequence[OfflineAttendanceRecord],
        server: Optional[AttendanceResponse],
    ) -> list[ResolutionDecision]:
        employee_id, date = key
        server_in = self._server_time(server, AttendanceType.CHECK_IN.value, date)
        server_out = self._server_time(server, AttendanceType.CHECK_OUT.value, date)
        checked_in = server_in is not None

        decisions = []
        for record in sorted(records, key=replay_order):
            is_check_in = record.attendance_type == AttendanceType.CHECK_IN.value
            server_time = server_in if is_check_in else server_out
            anomaly = False

            if server_time is None:
                resolution = Resolution.ACCEPT
                if server_in is None and server_out is None:
                    reason = "No server record for this date"
                else:
                    reason = f"Server has no {record.attendance_type} for this date"
                if not is_check_in and not checked_in:
                    anomaly = True
                    reason += "; check-out without a preceding check-in"
            else:
                delta = abs(record.timestamp - server_time)
                if delta == 0 or delta < self.cooldown_ms:
                    resolution = Resolution.DUPLICATE
                    reason = f"Server already has this {record.attendance_type}"
                elif is_check_in and server_time < record.timestamp:
                    resolution = Resolution.SUPERSEDE
                    reason = "Server check-in is earlier"
                elif not is_check_in and server_time > record.timestamp:
                    resolution = Resolution.SUPERSEDE
                    reason = "Server check-out is later"
                else:
                    resolution = Resolution.ACCEPT
                    reason = (
                        "Local check-in precedes the server record"
                        if is_check_in
                        else "Local check-out follows the server record"
                    )

            if resolution is Resolution.ACCEPT and is_check_in:
                checked_in = True

            decisions.append(
                ResolutionDecision(
                    record_id=record.id,
                    employee_id=employee_id,
                    date=date,
                    attendance_type=record.attendance_type,
                    timestamp=record.timestamp,
                    resolution=resolution,
                    reason=reason,
                    anomaly=anomaly,
                    server_time=server_time,
                )
            )
        return decisions

    def resolve(
        self,
        records: Iterable[OfflineAttendanceRecord],
        snapshots: Mapping[GroupKey, Optional[AttendanceResponse]],
    ) -> list[ResolutionDecision]:
        """
        Resolve every record against an already fetched server snapshot.

        Groups missing from `snapshots` are treated as having no server record.
        Decisions come back in replay order.
        """
        decisions: list[ResolutionDecision] = []
        for key, group in self.group_records(records).items():
            decisions.extend(self.resolve_group(key, group, snapshots.get(key)))
        decisions.sort(key=lambda d: (d.timestamp, _TYPE_ORDER.get(d.attendance_type, 2), d.record_id))
        return decisions

    async def resolve_pending(
        self, records: Iterable[OfflineAttendanceRecord], api: RemoteAttendanceApi
    ) -> ResolutionBatch:
        """
        Fetch the server record for each group and resolve it.

        A group whose fetch fails is deferred as a whole and stays unsynced.
        """
        batch = ResolutionBatch()
        snapshots: dict[GroupKey, Optional[AttendanceResponse]] = {}
        resolvable: list[OfflineAttendanceRecord] = []

        for key, group in self.group_records(records).items():
            employee_id, date = key
            try:
                snapshots[key] = await api.fetch_attendance_for_date(employee_id, date)
            except (TransportError, RemoteValidationError) as e:
                logger.warning(
                    f"Could not fetch server attendance for {employee_id} on {date}, "
                    f"deferring {len(group)} records: {e}"
                )
                for record in group:
                    batch.deferred[record.id] = str(e)
                continue
            resolvable.extend(group)

        batch.decisions = self.resolve(resolvable, snapshots)
        for decision in batch.decisions:
            logger.info(
                f"Record {decision.record_id} ({decision.attendance_type}) -> "
                f"{decision.resolution.value}: {decision.reason}"
            )
        return batch
