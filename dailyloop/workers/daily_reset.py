"""Midnight sweep: zero every user's daily checklist.

Redundant with the rollover the engine applies on first access each day, so
a missed or repeated run is harmless.
"""
import logging

from dailyloop.core.errors import AppError

logger = logging.getLogger("dailyloop.workers.daily_reset")


def run_daily_reset(*, service=None) -> dict:
    if service is None:
        from dailyloop.features.progress.service import progress_service

        service = progress_service

    user_ids = service.store.list_user_ids()
    reset = 0
    failed = 0
    for user_id in user_ids:
        try:
            service.reset_daily(user_id, source="scheduler")
            reset += 1
        except AppError as e:
            failed += 1
            logger.warning(
                "[daily_reset] reset failed",
                extra={"user_id": user_id, "error_code": e.code, "error_message": e.message},
            )

    logger.info(
        "[daily_reset] sweep complete",
        extra={"users": len(user_ids), "reset": reset, "failed": failed},
    )
    return {"users": len(user_ids), "reset": reset, "failed": failed}


if __name__ == "__main__":
    from dailyloop.core.config import settings
    from dailyloop.core.logging import configure_logging

    configure_logging(settings.ENV)
    result = run_daily_reset()
    print(result)
