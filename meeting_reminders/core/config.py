import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel


logger = logging.getLogger(__name__)

# Local development convenience; real deployments set the environment directly.
load_dotenv()


class AppConfig(BaseModel):
    app_base_url: str = "http://localhost:8000"
    store_driver: str = "supabase"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    mail_driver: str = "console"
    smtp_host: Optional[str] = None
    smtp_port: Optional[int] = None
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    sendgrid_api_key: Optional[str] = None
    default_sender: str = "reminders@example.org"
    default_sender_name: str = "Leader App"
    default_timezone: str = "America/New_York"
    token_ttl_days: int = 7
    window_start_hours: int = 0
    window_end_hours: int = 48
    interval_hours: int = 8
    run_scheduler: bool = False
    api_key: Optional[str] = None


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {raw!r}, using {default}")
        return default


def load_config() -> AppConfig:
    smtp_port_str = os.getenv("SMTP_PORT")
    smtp_port = int(smtp_port_str) if smtp_port_str and smtp_port_str.isdigit() else None

    window_start = _int_env("REMINDER_WINDOW_START_HOURS", 0)
    window_end = _int_env("REMINDER_WINDOW_END_HOURS", 48)
    if window_end <= window_start:
        logger.warning(
            f"Reminder window end ({window_end}h) must be after start ({window_start}h), using 0-48h"
        )
        window_start, window_end = 0, 48

    ttl_days = _int_env("TOKEN_TTL_DAYS", 7)
    if ttl_days <= 0:
        logger.warning(f"TOKEN_TTL_DAYS must be positive, got {ttl_days}, using 7")
        ttl_days = 7

    interval_hours = _int_env("REMINDER_INTERVAL_HOURS", 8)
    if interval_hours <= 0:
        logger.warning(f"REMINDER_INTERVAL_HOURS must be positive, got {interval_hours}, using 8")
        interval_hours = 8

    return AppConfig(
        app_base_url=os.getenv("APP_BASE_URL", "http://localhost:8000").rstrip("/"),
        store_driver=os.getenv("STORE_DRIVER", "supabase").lower(),
        supabase_url=os.getenv("SUPABASE_URL") or None,
        supabase_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_ANON_KEY") or None,
        mail_driver=os.getenv("MAIL_DRIVER", "console").lower(),
        smtp_host=os.getenv("SMTP_HOST"),
        smtp_port=smtp_port,
        smtp_username=os.getenv("SMTP_USERNAME"),
        smtp_password=os.getenv("SMTP_PASSWORD"),
        smtp_use_tls=os.getenv("SMTP_USE_TLS", "true").lower() == "true",
        sendgrid_api_key=os.getenv("SENDGRID_API_KEY"),
        default_sender=os.getenv("DEFAULT_SENDER", "reminders@example.org"),
        default_sender_name=os.getenv("DEFAULT_SENDER_NAME", "Leader App"),
        default_timezone=os.getenv("DEFAULT_TIMEZONE", "America/New_York"),
        token_ttl_days=ttl_days,
        window_start_hours=window_start,
        window_end_hours=window_end,
        interval_hours=interval_hours,
        run_scheduler=os.getenv("RUN_SCHEDULER", "0") == "1",
        api_key=os.getenv("API_KEY") or None,
    )
