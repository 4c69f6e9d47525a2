# apps/backend/routes/keepalive_status.py
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse

from apps.backend.config.settings import Settings, get_settings
from apps.backend.repositories.canwin_repository import CanWinRepository
from apps.backend.routes.deps import get_optional_repo
from apps.backend.utils.keepalive import cron_authorized, table_ping

log = logging.getLogger("canwin.keepalive")

router = APIRouter(prefix="/api", tags=["Keepalive"])


@router.get("/keep-alive")
async def keep_alive(
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
    repo: Optional[CanWinRepository] = Depends(get_optional_repo),
):
    """
    Cron target that keeps the Supabase free tier active.
    Auth is checked before the database is touched.
    """
    if not cron_authorized(authorization, settings):
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    try:
        if repo is None:
            raise RuntimeError("Supabase client unavailable")
        result = await table_ping(repo)
    except Exception as e:
        log.error("Keep-alive error: %s", e)
        result = {
            "success": False,
            "error": str(e),
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }

    if result.get("success"):
        return JSONResponse(status_code=200, content=result)
    log.error("Supabase ping error: %s", result.get("error"))
    return JSONResponse(status_code=500, content=result)
