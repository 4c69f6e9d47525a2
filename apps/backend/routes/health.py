from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from apps.backend.routes.deps import get_repo
from apps.backend.repositories.canwin_repository import CanWinRepository
from apps.backend.services.core_service import health_core
from apps.backend.utils.keepalive import supabase_rest_ping


router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health_root():
    return {"ok": True}


@router.get("/canwin")
async def health_canwin(repo: CanWinRepository = Depends(get_repo)):
    res = await health_core(repo)
    return JSONResponse(content=res, status_code=200 if res.get("ok") else 503)


@router.get("/keepalive")
async def health_keepalive():
    return {"ok": await supabase_rest_ping()}
