from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

TaskKind = Literal["gratitude", "journal", "pomodoro", "todo"]

TASK_KINDS: Tuple[TaskKind, ...] = ("gratitude", "journal", "pomodoro", "todo")

PERCENT_PER_TASK = 25


def empty_tasks() -> Dict[str, bool]:
    return {kind: False for kind in TASK_KINDS}


def compute_progress_percent(completed_tasks: Dict[str, bool]) -> int:
    done = sum(1 for kind in TASK_KINDS if completed_tasks.get(kind))
    if done == len(TASK_KINDS):
        return 100
    return PERCENT_PER_TASK * done


@dataclass
class ProgressRecord:
    """
    Daily task-completion record for one user. Timestamps are tz-aware.

    `version` is None until the record has been persisted once.
    """

    user_id: str
    last_active_at: datetime
    completed_tasks: Dict[str, bool] = field(default_factory=empty_tasks)
    streak: int = 0
    last_streak_update_at: Optional[datetime] = None
    version: Optional[int] = None

    @property
    def progress_percent(self) -> int:
        return compute_progress_percent(self.completed_tasks)

    @property
    def all_tasks_completed(self) -> bool:
        return all(self.completed_tasks.get(kind) for kind in TASK_KINDS)

    def clear_tasks(self) -> None:
        self.completed_tasks = empty_tasks()

    def copy(self) -> "ProgressRecord":
        return ProgressRecord(
            user_id=self.user_id,
            last_active_at=self.last_active_at,
            completed_tasks=dict(self.completed_tasks),
            streak=self.streak,
            last_streak_update_at=self.last_streak_update_at,
            version=self.version,
        )


class ProgressState(BaseModel):
    """What callers see of a record: camelCase on the wire."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    completed_tasks: Dict[str, bool]
    progress_percent: int
    streak: int
    all_tasks_completed: bool

    @classmethod
    def from_record(cls, record: ProgressRecord) -> "ProgressState":
        return cls(
            completed_tasks=dict(record.completed_tasks),
            progress_percent=record.progress_percent,
            streak=record.streak,
            all_tasks_completed=record.all_tasks_completed,
        )
