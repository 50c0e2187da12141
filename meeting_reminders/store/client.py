from __future__ import annotations

import logging

from supabase import Client, create_client

from meeting_reminders.core.config import load_config

_client: Client | None = None
logger = logging.getLogger(__name__)


def get_supabase() -> Client:
    global _client
    if _client is None:
        cfg = load_config()
        if not cfg.supabase_url or not cfg.supabase_key:
            raise RuntimeError("Supabase URL and Key are required")
        logger.debug("Creating Supabase client url=%s", cfg.supabase_url)
        _client = create_client(cfg.supabase_url, cfg.supabase_key)
    return _client
