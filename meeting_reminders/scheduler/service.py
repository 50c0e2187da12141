import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from meeting_reminders.core.config import AppConfig, load_config
from meeting_reminders.observability.logger import capture_exception, log_error, log_warning, timing
from meeting_reminders.routes.health import update_last_run
from meeting_reminders.workflow.generator import GenerationSummary, build_generator_from_env

logger = logging.getLogger(__name__)

SCHEDULER_JOB_ID = "meeting_reminders"


def run_reminder_generation(source: str = "scheduler", config: Optional[AppConfig] = None) -> GenerationSummary:
    """
    Run one generator pass and record the outcome for /healthz.

    Per-meeting failures are part of the summary; anything raised here means
    the pass itself could not run (e.g. the candidate scan failed).
    """
    try:
        generator = build_generator_from_env(config)
        with timing("reminder_generation") as timer:
            summary = generator.run()
    except Exception as e:
        log_error(e, {"action": "reminder_generation_failed", "source": source})
        capture_exception(e)
        update_last_run(
            source=source,
            processed=0,
            skipped=0,
            error_count=0,
            success=False,
            error=str(e),
        )
        raise

    if summary.errors:
        log_warning(
            "Reminder generation finished with per-meeting errors",
            {"source": source, "error_count": len(summary.errors)},
        )

    update_last_run(
        source=source,
        processed=summary.processed,
        skipped=summary.skipped,
        error_count=len(summary.errors),
        duration_ms=timer.get_duration_ms(),
        success=True,
    )
    return summary


class ReminderScheduler:
    """
    In-process trigger for the reminder generator.

    Runs every REMINDER_INTERVAL_HOURS. An external cron hitting
    POST /reminders/generate is equivalent; overlapping runs are harmless.
    """

    def __init__(self, config: Optional[AppConfig] = None):
        self._config = config or load_config()
        self._scheduler: Optional[BackgroundScheduler] = None
        self._last_summary: Optional[GenerationSummary] = None
        self._last_run: Optional[datetime] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def _job(self) -> None:
        try:
            self._last_summary = run_reminder_generation(source="scheduler", config=self._config)
        except Exception as e:
            logger.exception(f"Scheduled reminder generation failed: {e}")
        finally:
            self._last_run = datetime.now(timezone.utc)

    def start(self) -> None:
        if self.running:
            logger.warning("Scheduler is already running")
            return
        self._scheduler = BackgroundScheduler(timezone="UTC")
        self._scheduler.add_job(
            self._job,
            "interval",
            id=SCHEDULER_JOB_ID,
            hours=self._config.interval_hours,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info(f"Scheduler started (RUN_SCHEDULER=1), every {self._config.interval_hours}h")

    def stop(self) -> None:
        if not self.running:
            logger.warning("Scheduler is not running")
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Scheduler stopped")

    def next_run_time(self) -> Optional[datetime]:
        if not self.running:
            return None
        job = self._scheduler.get_job(SCHEDULER_JOB_ID)
        return job.next_run_time if job else None

    def get_status(self) -> Dict[str, Any]:
        next_run = self.next_run_time()
        return {
            "running": self.running,
            "enabled": self.is_enabled(),
            "interval_hours": self._config.interval_hours,
            "last_run": self._last_run.isoformat() if self._last_run else None,
            "next_run": next_run.isoformat() if next_run else None,
            "last_summary": self._last_summary.model_dump(mode="json") if self._last_summary else None,
        }

    def is_enabled(self) -> bool:
        return self._config.run_scheduler


# Global scheduler instance
_scheduler: Optional[ReminderScheduler] = None


def get_scheduler() -> ReminderScheduler:
    """Get the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = ReminderScheduler()
    return _scheduler


def start_scheduler() -> None:
    """Start the global scheduler if enabled."""
    scheduler = get_scheduler()
    if scheduler.is_enabled():
        scheduler.start()
    else:
        logger.info("Scheduler disabled (RUN_SCHEDULER=0)")


def stop_scheduler() -> None:
    """Stop the global scheduler if it was started."""
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        _scheduler.stop()
