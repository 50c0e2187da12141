"""
POST /reminders/generate: run one reminder generator pass and return its summary.
Requires X-API-Key when API_KEY is configured.
"""
import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from meeting_reminders.core.config import load_config
from meeting_reminders.schemas.reminders import GenerateResponse
from meeting_reminders.scheduler.service import run_reminder_generation

logger = logging.getLogger(__name__)

router = APIRouter()


def require_api_key_if_configured(request: Request) -> None:
    """Require API key if configured in environment."""
    cfg = load_config()
    if not cfg.api_key:
        return
    provided = request.headers.get("x-api-key")
    if provided != cfg.api_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


@router.post("/reminders/generate")
async def generate_reminders(request: Request) -> JSONResponse:
    """
    Scan the reminder window and email organizers their confirmation links.

    Safe to call repeatedly: meetings that were already reminded are skipped.
    """
    require_api_key_if_configured(request)

    try:
        summary = run_reminder_generation(source="api")
    except Exception:
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Failed to generate reminders"},
        )

    body = GenerateResponse(
        processed=summary.processed,
        skipped=summary.skipped,
        errors=summary.errors,
    )
    logger.info(f"generate_reminders processed={summary.processed} skipped={summary.skipped} errors={len(summary.errors)}")
    return JSONResponse(status_code=200, content=body.model_dump())
