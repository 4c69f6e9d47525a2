# apps/backend/utils/keepalive.py

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from apps.backend.config.settings import Settings, get_settings

log = logging.getLogger("canwin.keepalive")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def cron_authorized(authorization: Optional[str], settings: Settings) -> bool:
    """
    Cron callers must present the secret in production. Outside production, or
    when no secret is configured, the ping is open.
    """
    if settings.CRON_SECRET and authorization == f"Bearer {settings.CRON_SECRET}":
        return True
    return not (settings.is_production and settings.CRON_SECRET)


async def table_ping(repo: Any) -> Dict[str, Any]:
    """
    One-row select on public_users. Supabase counts this as project activity.
    """
    checks = await repo.ping_tables(("public_users",))
    if checks.get("public_users"):
        return {"success": True, "message": "Supabase is alive", "timestamp": _now_iso()}
    return {"success": False, "error": "public_users ping failed", "timestamp": _now_iso()}


async def supabase_rest_ping(settings: Optional[Settings] = None) -> bool:
    """
    Lightweight REST call, no table dependency.
    """
    settings = settings or get_settings()
    if not settings.supabase_configured:
        log.warning("[KEEPALIVE] Supabase env vars missing, skipping Supabase ping")
        return False

    headers = {
        "apikey": settings.SUPABASE_KEY,
        "Authorization": f"Bearer {settings.SUPABASE_KEY}",
    }

    try:
        async with httpx.AsyncClient(timeout=10) as client:
            res = await client.get(f"{settings.SUPABASE_URL}/rest/v1/", headers=headers)
    except httpx.HTTPError as e:
        log.error(f"[KEEPALIVE] Supabase REST error: {e}")
        return False

    if res.status_code < 400:
        log.info("[KEEPALIVE] Supabase REST ping OK")
        return True
    log.warning(f"[KEEPALIVE] Supabase REST ping failed ({res.status_code})")
    return False


def start_keepalive_tasks(scheduler: AsyncIOScheduler, interval_seconds: int = 300) -> None:
    scheduler.add_job(
        supabase_rest_ping,
        "interval",
        seconds=interval_seconds,
        id="supabase_rest_keepalive",
        replace_existing=True,
    )
    log.info(f"[KEEPALIVE] Scheduler started, interval {interval_seconds}s")
