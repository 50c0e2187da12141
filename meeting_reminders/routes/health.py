import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from meeting_reminders.core.config import load_config
from meeting_reminders.core.errors import EmailConfigurationError
from meeting_reminders.services.emailer import select_emailer_from_env

router = APIRouter()

# Global state for last generator run tracking
_last_run: Optional[Dict[str, Any]] = None


def _now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def update_last_run(
    source: str,
    processed: int,
    skipped: int,
    error_count: int,
    duration_ms: Optional[float] = None,
    success: bool = True,
    error: Optional[str] = None
) -> None:
    """
    Update the last reminder generator run information.

    Args:
        source: What triggered the run ('scheduler' or 'api')
        processed: Meetings whose organizer was emailed
        skipped: Meetings already handled by an earlier run
        error_count: Meetings that failed individually
        duration_ms: Optional duration in milliseconds
        success: Whether the run as a whole completed
        error: Optional error message when the run itself failed
    """
    global _last_run

    _last_run = {
        "time": _now_iso(),
        "source": source,
        "processed": processed,
        "skipped": skipped,
        "error_count": error_count,
        "success": success,
    }

    if duration_ms is not None:
        _last_run["duration_ms"] = round(duration_ms, 2)

    if error is not None:
        _last_run["error"] = error


def get_last_run() -> Optional[Dict[str, Any]]:
    """Get the last run information."""
    return _last_run


@router.get("/healthz")
async def health_check() -> JSONResponse:
    """
    Health check endpoint with last generator run information.

    Returns:
        JSON response with status and last run metadata
    """
    response = {
        "status": "ok",
        "timestamp": _now_iso(),
    }

    last_run = get_last_run()
    if last_run:
        response["last_run"] = last_run

    obs_enabled = os.getenv("OBS_ENABLED", "false").lower() == "true"
    response["observability"] = {
        "enabled": obs_enabled,
        "sentry_configured": bool(os.getenv("SENTRY_DSN")),
    }

    return JSONResponse(status_code=200, content=response)


@router.get("/healthz/ready")
async def readiness_check() -> JSONResponse:
    """
    Readiness check: the store and mail driver are configured.

    Returns:
        JSON response indicating if the service is ready to accept traffic
    """
    cfg = load_config()
    checks = {}

    if cfg.store_driver == "memory":
        checks["database"] = "ok"
    elif cfg.store_driver == "supabase":
        checks["database"] = "ok" if cfg.supabase_url and cfg.supabase_key else "missing_configuration"
    else:
        checks["database"] = "unsupported_driver"

    try:
        select_emailer_from_env(cfg)
        checks["email_service"] = "ok"
    except EmailConfigurationError:
        checks["email_service"] = "missing_configuration"

    all_healthy = all(status == "ok" for status in checks.values())

    response = {
        "status": "ready" if all_healthy else "not_ready",
        "timestamp": _now_iso(),
        "checks": checks,
    }

    status_code = 200 if all_healthy else 503
    return JSONResponse(status_code=status_code, content=response)


@router.get("/healthz/live")
async def liveness_check() -> JSONResponse:
    """Liveness check endpoint for container orchestration."""
    return JSONResponse(status_code=200, content={"status": "alive", "timestamp": _now_iso()})
