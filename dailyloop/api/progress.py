from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from dailyloop.core.auth import get_current_user_id
from dailyloop.features.progress.service import ProgressService, progress_service

logger = logging.getLogger("dailyloop")

router = APIRouter(prefix="/api/progress")


class TaskCompletionUpdate(BaseModel):
    completed: bool


def get_progress_service() -> ProgressService:
    return progress_service


@router.get("")
def get_progress(
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    """Return today's checklist, percentage and streak (after day rollover)."""
    state = service.get_progress(user_id)
    return state.model_dump(by_alias=True)


# Declared before /{task_kind} so "reset" is never read as a task kind
@router.post("/reset")
def reset_daily_progress(
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    logger.info(f"[/api/progress/reset] resetting daily progress for user {user_id}")
    state = service.reset_daily(user_id, source="user")
    return state.model_dump(by_alias=True)


@router.post("/{task_kind}")
def update_task_completion(
    task_kind: str,
    body: TaskCompletionUpdate,
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    state = service.set_task_completion(user_id, task_kind, body.completed)
    return state.model_dump(by_alias=True)
