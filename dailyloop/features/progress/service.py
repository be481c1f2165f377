from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime, timezone, tzinfo
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union

from dailyloop.core.config import settings
from dailyloop.core.errors import ConcurrencyConflictError, InvalidTaskKindError, StorageError
from dailyloop.core.logging import log_event
from dailyloop.core.metrics import (
    daily_resets_total,
    progress_updates_total,
    store_conflicts_total,
    streak_increments_total,
    streak_resets_total,
)
from dailyloop.features.progress.calendar import DayCalendar, utc_now
from dailyloop.models.progress import ProgressRecord, ProgressState, TASK_KINDS, TaskKind

# (event name, structured fields) collected during one attempt
Event = Tuple[str, Dict[str, Any]]

Mutation = Callable[[ProgressRecord, datetime, List[Event]], None]


def parse_task_kind(value: str) -> TaskKind:
    if value not in TASK_KINDS:
        raise InvalidTaskKindError(
            f"Invalid task type '{value}'; expected one of: {', '.join(TASK_KINDS)}"
        )
    return value  # type: ignore[return-value]


class _LockEntry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class _UserLocks:
    """One lock per user id; different users never contend.

    An entry lives only while some thread holds or waits on it.
    """

    def __init__(self):
        self._locks: Dict[str, _LockEntry] = {}
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, user_id: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.get(user_id)
            if entry is None:
                entry = self._locks[user_id] = _LockEntry()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if not entry.users:
                    del self._locks[user_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class ProgressService:
    """Owns every mutation of a user's daily progress record.

    Each public operation is one serialized load -> reconcile -> mutate -> save
    for its user. Reconciliation applies the day rollover lazily, so nothing has
    to run at midnight for the record to be correct.

    Streak events are collected per attempt and only logged and counted once
    the save that carries them succeeds.
    """

    def __init__(
        self,
        store=None,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        zone: Union[str, tzinfo, None] = None,
        max_attempts: Optional[int] = None,
    ):
        self._store = store
        self._clock = clock or utc_now
        self._calendar = DayCalendar(zone if zone is not None else settings.PROGRESS_TIMEZONE)
        self._max_attempts = max(1, max_attempts or settings.PROGRESS_MAX_ATTEMPTS)
        self._locks = _UserLocks()

    @property
    def store(self):
        if self._store is None:
            from dailyloop.features.progress.store import get_store

            self._store = get_store()
        return self._store

    @property
    def calendar(self) -> DayCalendar:
        return self._calendar

    # Public operations ------------------------------------------------
    def reconcile_on_access(self, user_id: str) -> ProgressState:
        return self._run(user_id, None, op="reconcile")

    def ensure_record(self, user_id: str) -> ProgressState:
        """Create the zero-valued record for a newly provisioned user (no-op if present)."""
        return self.reconcile_on_access(user_id)

    def get_progress(self, user_id: str) -> ProgressState:
        return self._run(user_id, None, op="get")

    def set_task_completion(self, user_id: str, task_kind: str, completed: bool) -> ProgressState:
        kind = parse_task_kind(task_kind)
        completed = bool(completed)

        def _apply(record: ProgressRecord, now: datetime, events: List[Event]) -> None:
            record.completed_tasks[kind] = completed
            record.last_active_at = now
            if record.all_tasks_completed and self._calendar.is_earlier_day(record.last_streak_update_at, now):
                record.streak += 1
                record.last_streak_update_at = now
                events.append(("progress.streak_incremented", {"task_kind": kind, "streak": record.streak}))

        state = self._run(user_id, _apply, op="set_task")
        progress_updates_total.inc(labels={"task_kind": kind, "completed": str(completed).lower()})
        return state

    def reset_daily(self, user_id: str, *, source: str = "user") -> ProgressState:
        """Zero today's flags without touching the streak. Idempotent."""

        def _apply(record: ProgressRecord, now: datetime, events: List[Event]) -> None:
            record.clear_tasks()

        state = self._run(user_id, _apply, op="reset_daily")
        daily_resets_total.inc(labels={"source": source})
        log_event("info", "progress.reset_daily", user_id=user_id, extra={"source": source})
        return state

    # Internal helpers -------------------------------------------------
    def _run(self, user_id: str, mutation: Optional[Mutation], *, op: str) -> ProgressState:
        with self._locks.hold(user_id):
            for attempt in range(1, self._max_attempts + 1):
                events: List[Event] = []
                now = self._now()
                record, expected_version = self._load_or_init(user_id, now)
                self._reconcile(record, now, events)
                if mutation is not None:
                    mutation(record, now, events)
                try:
                    saved = self.store.save(record, expected_version)
                except ConcurrencyConflictError:
                    store_conflicts_total.inc()
                    log_event(
                        "warning",
                        "progress.conflict_retry",
                        user_id=user_id,
                        error_code="conflict",
                        extra={"op": op, "attempt": attempt},
                    )
                    continue
                self._emit(user_id, events)
                return ProgressState.from_record(saved)

        raise StorageError(
            f"progress for {user_id} kept changing underneath {op}; gave up after {self._max_attempts} attempts"
        )

    def _emit(self, user_id: str, events: List[Event]) -> None:
        for name, fields in events:
            if name == "progress.streak_incremented":
                streak_increments_total.inc()
            elif name == "progress.streak_reset" and fields["previous_streak"]:
                streak_resets_total.inc()
            fields = dict(fields)
            task_kind = fields.pop("task_kind", None)
            log_event("info", name, user_id=user_id, task_kind=task_kind, extra=fields)

    def _load_or_init(self, user_id: str, now: datetime) -> Tuple[ProgressRecord, Optional[int]]:
        record = self._load(user_id)
        if record is None:
            return ProgressRecord(user_id=user_id, last_active_at=now), None
        return record, record.version

    def _load(self, user_id: str) -> Optional[ProgressRecord]:
        # Reads are idempotent: retry once before surfacing the failure
        try:
            return self.store.load(user_id)
        except StorageError as exc:
            log_event("warning", "progress.load_retry", user_id=user_id, error_code=exc.code)
            return self.store.load(user_id)

    def _reconcile(self, record: ProgressRecord, now: datetime, events: List[Event]) -> None:
        if not self._calendar.is_earlier_day(record.last_active_at, now):
            record.last_active_at = now
            return

        qualified_yesterday = (
            record.last_streak_update_at is not None
            and self._calendar.is_day_before(record.last_streak_update_at, now)
        )
        days_elapsed = self._calendar.days_between(record.last_active_at, now)

        if days_elapsed > 1 or not qualified_yesterday:
            events.append(
                (
                    "progress.streak_reset",
                    {
                        "previous_streak": record.streak,
                        "days_elapsed": days_elapsed,
                        "qualified_yesterday": qualified_yesterday,
                    },
                )
            )
            record.streak = 0
            record.last_streak_update_at = None

        record.clear_tasks()
        record.last_active_at = now
        events.append(("progress.rollover", {"days_elapsed": days_elapsed, "streak": record.streak}))

    def _now(self) -> datetime:
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now


# Singleton service used by routes and the daily sweep
progress_service = ProgressService()
