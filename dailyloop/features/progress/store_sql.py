"""
SQL-backed progress record store (SQLAlchemy Core).

Maintains the identical interface to InMemoryProgressStore. Driver errors are
translated to StorageError; a stale `version` is a ConcurrencyConflictError.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import delete, insert, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from dailyloop.core.database import get_db_session, progress_records
from dailyloop.core.errors import ConcurrencyConflictError, StorageError
from dailyloop.models.progress import ProgressRecord, TASK_KINDS


def _aware(moment: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone=True columns
    if moment is None or moment.tzinfo is not None:
        return moment
    return moment.replace(tzinfo=timezone.utc)


def _row_to_record(row) -> ProgressRecord:
    return ProgressRecord(
        user_id=row.user_id,
        completed_tasks={kind: bool(getattr(row, f"{kind}_done")) for kind in TASK_KINDS},
        streak=row.streak,
        last_active_at=_aware(row.last_active_at),
        last_streak_update_at=_aware(row.last_streak_update_at),
        version=row.version,
    )


def _record_values(record: ProgressRecord) -> dict:
    values = {f"{kind}_done": bool(record.completed_tasks.get(kind)) for kind in TASK_KINDS}
    values.update(
        progress_percent=record.progress_percent,
        streak=record.streak,
        last_active_at=record.last_active_at,
        last_streak_update_at=record.last_streak_update_at,
    )
    return values


class SqlProgressStore:
    """One row per user in `progress_records`."""

    def load(self, user_id: str) -> Optional[ProgressRecord]:
        try:
            with get_db_session() as session:
                row = session.execute(
                    select(progress_records).where(progress_records.c.user_id == user_id)
                ).first()
        except SQLAlchemyError as e:
            raise StorageError(f"failed to load progress for {user_id}: {e.__class__.__name__}") from e
        return _row_to_record(row) if row else None

    def save(self, record: ProgressRecord, expected_version: Optional[int]) -> ProgressRecord:
        new_version = (expected_version or 0) + 1
        values = _record_values(record)
        try:
            with get_db_session() as session:
                if expected_version is None:
                    session.execute(
                        insert(progress_records).values(
                            user_id=record.user_id,
                            version=new_version,
                            **values,
                        )
                    )
                else:
                    result = session.execute(
                        update(progress_records)
                        .where(progress_records.c.user_id == record.user_id)
                        .where(progress_records.c.version == expected_version)
                        .values(version=new_version, **values)
                    )
                    if result.rowcount != 1:
                        raise ConcurrencyConflictError(
                            f"progress record for {record.user_id} changed (expected version {expected_version})"
                        )
        except IntegrityError as e:
            raise ConcurrencyConflictError(f"progress record for {record.user_id} already exists") from e
        except SQLAlchemyError as e:
            raise StorageError(f"failed to save progress for {record.user_id}: {e.__class__.__name__}") from e

        saved = record.copy()
        saved.version = new_version
        return saved

    def delete(self, user_id: str) -> bool:
        try:
            with get_db_session() as session:
                result = session.execute(
                    delete(progress_records).where(progress_records.c.user_id == user_id)
                )
                return (result.rowcount or 0) > 0
        except SQLAlchemyError as e:
            raise StorageError(f"failed to delete progress for {user_id}: {e.__class__.__name__}") from e

    def list_user_ids(self) -> List[str]:
        try:
            with get_db_session() as session:
                rows = session.execute(
                    select(progress_records.c.user_id).order_by(progress_records.c.user_id)
                )
                return [row.user_id for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"failed to list progress records: {e.__class__.__name__}") from e

    def clear(self) -> None:
        """FOR TESTING ONLY."""
        with get_db_session() as session:
            session.execute(delete(progress_records))

    def ping(self) -> bool:
        try:
            with get_db_session() as session:
                session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False
