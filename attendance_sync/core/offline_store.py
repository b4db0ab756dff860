"""
Local attendance store.

Durable, append-only buffer of punch attempts captured on the device. Records
are written before any upload is attempted and only flipped to synced once the
sync pass has resolved them.
"""

from typing import Optional

from sqlalchemy import delete, func, update
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from attendance_sync.core.logging import get_logger
from attendance_sync.models.attendance import OfflineAttendanceRecord

logger = get_logger(__name__)


class LocalAttendanceStore:
    """Repository over the offline_attendance table."""

    def __init__(self, engine: Engine):
        self._engine = engine

    def insert(self, record: OfflineAttendanceRecord) -> OfflineAttendanceRecord:
        """
        Persist a record, replacing any existing record with the same id.

        Inserting the same id twice leaves exactly one row holding the latest
        values.
        """
        with Session(self._engine) as session:
            merged = session.merge(record)
            session.commit()
            session.refresh(merged)
            logger.debug(f"Stored offline attendance {merged.id} ({merged.attendance_type})")
            return merged

    def get(self, record_id: str) -> Optional[OfflineAttendanceRecord]:
        with Session(self._engine) as session:
            return session.get(OfflineAttendanceRecord, record_id)

    def list_unsynced(self) -> list[OfflineAttendanceRecord]:
        """Unsynced records, oldest first so replay keeps causal order."""
        with Session(self._engine) as session:
            statement = (
                select(OfflineAttendanceRecord)
                .where(OfflineAttendanceRecord.synced == False)  # noqa: E712
                .order_by(OfflineAttendanceRecord.timestamp, OfflineAttendanceRecord.id)
            )
            return list(session.exec(statement).all())

    def mark_synced(self, record_id: str) -> bool:
        """Flip the synced flag. Unknown ids are ignored."""
        with Session(self._engine) as session:
            result = session.exec(
                update(OfflineAttendanceRecord)
                .where(OfflineAttendanceRecord.id == record_id)
                .values(synced=True)
            )
            session.commit()
            return result.rowcount > 0

    def purge_synced_older_than(self, cutoff_ms: int) -> int:
        """Delete synced records with a timestamp strictly below `cutoff_ms`."""
        with Session(self._engine) as session:
            result = session.exec(
                delete(OfflineAttendanceRecord).where(
                    (OfflineAttendanceRecord.synced == True)  # noqa: E712
                    & (OfflineAttendanceRecord.timestamp < cutoff_ms)
                )
            )
            session.commit()
            if result.rowcount:
                logger.info(f"Purged {result.rowcount} synced offline attendance records")
            return result.rowcount

    def count_unsynced(self) -> int:
        with Session(self._engine) as session:
            statement = select(func.count()).select_from(OfflineAttendanceRecord).where(
                OfflineAttendanceRecord.synced == False  # noqa: E712
            )
            return session.exec(statement).one()
