"""
Completion policies for the four task producers.

The gratitude, journal, pomodoro and todo subsystems own their entries; after
any change that can alter today's completion they call one of the report_*
helpers, which decides the flag and forwards it to the engine exactly once.
"""

from typing import Iterable, Optional

from dailyloop.core.errors import ValidationError
from dailyloop.models.progress import ProgressState

# Work/break cycles that make up a full session, per preset
POMODORO_PRESET_CYCLES = {
    "beginner": 8,
    "intermediate": 4,
    "flow_state": 2,
}


def _service(service):
    if service is not None:
        return service
    from dailyloop.features.progress.service import progress_service

    return progress_service


def entries_completed(entries_today: int) -> bool:
    return entries_today > 0


def todo_list_completed(done_flags: Iterable[bool]) -> bool:
    flags = list(done_flags)
    return bool(flags) and all(flags)


def pomodoro_session_completed(preset: str, completed_cycles: int) -> bool:
    required = POMODORO_PRESET_CYCLES.get(preset)
    if required is None:
        raise ValidationError(
            f"Invalid pomodoro type '{preset}'; expected one of: {', '.join(POMODORO_PRESET_CYCLES)}"
        )
    if completed_cycles < 0:
        raise ValidationError("completed_cycles must be >= 0")
    return completed_cycles >= required


def report_gratitude_entries(user_id: str, entries_today: int, *, service=None) -> ProgressState:
    return _service(service).set_task_completion(user_id, "gratitude", entries_completed(entries_today))


def report_journal_entries(user_id: str, entries_today: int, *, service=None) -> ProgressState:
    return _service(service).set_task_completion(user_id, "journal", entries_completed(entries_today))


def report_todo_list(user_id: str, done_flags: Iterable[bool], *, service=None) -> ProgressState:
    """Recompute after every todo mutation; an empty list counts as not done."""
    return _service(service).set_task_completion(user_id, "todo", todo_list_completed(done_flags))


def report_pomodoro_session(
    user_id: str,
    preset: str,
    completed_cycles: int,
    *,
    service=None,
) -> Optional[ProgressState]:
    """Mark pomodoro done once a full session finishes.

    Partial sessions report nothing: an earlier full session today stays counted.
    """
    if not pomodoro_session_completed(preset, completed_cycles):
        return None
    return _service(service).set_task_completion(user_id, "pomodoro", True)
