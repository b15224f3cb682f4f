from __future__ import annotations

import logging
from typing import Optional

from supabase import Client, create_client

from app.core.config import settings

logger = logging.getLogger(__name__)

_client: Optional[Client] = None


def get_supabase_client() -> Optional[Client]:
    """
    Lazily create the shared Supabase client for the place, route, session and cache tables.
    Returns None when Supabase is disabled or unconfigured; callers then use in-memory stores.
    """
    global _client
    if _client is not None:
        return _client

    if not settings.use_supabase:
        return None

    if not (settings.supabase_url and settings.supabase_anon_key):
        logger.info("Supabase credentials not configured; using in-memory storage.")
        return None

    try:
        _client = create_client(settings.supabase_url, settings.supabase_anon_key)
        logger.info("Supabase client initialized.")
    except Exception as exc:
        logger.exception("Failed to initialize Supabase client: %s", exc)
        _client = None
    return _client
