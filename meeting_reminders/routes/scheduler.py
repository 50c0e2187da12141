import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from meeting_reminders.routes.reminders import require_api_key_if_configured
from meeting_reminders.scheduler.service import get_scheduler, run_reminder_generation

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/scheduler/status")
async def get_scheduler_status() -> JSONResponse:
    """Interval, running flag, next run time and the summary of the latest scheduled run."""
    return JSONResponse(status_code=200, content={"ok": True, "scheduler": get_scheduler().get_status()})


@router.post("/scheduler/run")
async def run_scheduler_now(request: Request) -> JSONResponse:
    """
    Run the reminder generator immediately, outside the regular interval.

    Guarded by X-API-Key when API_KEY is configured. Meetings already
    reminded are skipped, so calling this between scheduled runs is safe.
    """
    require_api_key_if_configured(request)

    try:
        summary = run_reminder_generation(source="scheduler")
    except Exception:
        # run_reminder_generation has already logged and reported the cause.
        raise HTTPException(status_code=500, detail="Reminder generation failed")

    logger.info("Manual reminder run: processed=%d skipped=%d errors=%d",
                summary.processed, summary.skipped, len(summary.errors))
    return JSONResponse(
        status_code=200,
        content={
            "ok": True,
            "message": "Reminder generation completed",
            "summary": summary.model_dump(mode="json"),
        },
    )
