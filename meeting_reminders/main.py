import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from meeting_reminders.observability.logger import init_sentry
from meeting_reminders.routes.confirmation import router as confirmation_router
from meeting_reminders.routes.health import router as health_router
from meeting_reminders.routes.reminders import router as reminders_router
from meeting_reminders.routes.scheduler import router as scheduler_router
from meeting_reminders.scheduler.service import start_scheduler, stop_scheduler

logger = logging.getLogger("meeting_reminders")
logging.basicConfig(level=logging.INFO)

init_sentry()

app = FastAPI(title="Meeting Reminders")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.on_event("startup")
def _startup():
    start_scheduler()


@app.on_event("shutdown")
def _shutdown():
    stop_scheduler()


# Routes
app.include_router(confirmation_router, tags=["confirmation"])
app.include_router(reminders_router, tags=["reminders"])
app.include_router(health_router, tags=["health"])
app.include_router(scheduler_router, tags=["scheduler"])


@app.get("/")
def health():
    return {"status": "ok"}
