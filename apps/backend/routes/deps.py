# apps/backend/routes/deps.py
import logging
from typing import Dict, Optional

from fastapi import Depends, Header

from apps.backend.config.settings import Settings, get_settings
from apps.backend.db import get_supabase
from apps.backend.repositories.canwin_repository import CanWinRepository
from apps.backend.services.admin.admin_service import AdminService
from apps.backend.services.core_service import CoreError, get_admin
from apps.backend.services.promoter_service import PromoterService
from apps.backend.services.referral_service import ReferralService

log = logging.getLogger("canwin.deps")


def get_optional_repo(settings: Settings = Depends(get_settings)) -> Optional[CanWinRepository]:
    try:
        sb = get_supabase()
    except Exception as e:
        log.error("Supabase client init failed: %s", e)
        return None
    if not sb:
        return None
    return CanWinRepository(sb, avatar_bucket=settings.AVATAR_BUCKET)


def get_repo(repo: Optional[CanWinRepository] = Depends(get_optional_repo)) -> CanWinRepository:
    if repo is None:
        raise CoreError("Supabase client unavailable", 503)
    return repo


def get_promoter_service(repo: CanWinRepository = Depends(get_repo)) -> PromoterService:
    return PromoterService(repo)


def get_referral_service(repo: CanWinRepository = Depends(get_repo)) -> ReferralService:
    return ReferralService(repo)


def get_admin_service(repo: CanWinRepository = Depends(get_repo)) -> AdminService:
    return AdminService(repo)


async def require_admin(
    authorization: Optional[str] = Header(default=None),
    repo: CanWinRepository = Depends(get_repo),
    settings: Settings = Depends(get_settings),
) -> Dict[str, str]:
    return await get_admin(repo, authorization, settings.ADMIN_EMAILS)
