import logging
from typing import Optional

from supabase import Client, create_client

from apps.backend.config.settings import get_settings

log = logging.getLogger("canwin.db")


def get_supabase() -> Optional[Client]:
    settings = get_settings()
    if not settings.supabase_configured:
        log.warning("Supabase not configured: set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY")
        return None
    return create_client(
        settings.SUPABASE_URL,
        settings.SUPABASE_KEY,
    )
