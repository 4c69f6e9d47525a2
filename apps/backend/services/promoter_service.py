"""
Promoter Service
================

Registration, login-state lookup, dashboard and self-service profile edits
for promoters. Routes stay thin; persistence goes through the injected
repository.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Dict, Optional

from apps.backend.repositories.canwin_repository import DuplicateRecordError
from apps.backend.services.avatars import store_avatar
from apps.backend.services.core_service import CoreError
from apps.backend.services.levels.badges import badge_for
from apps.backend.services.levels.level_engine import LevelEngine
from apps.backend.services import validators

log = logging.getLogger("canwin.promoters")


def _parse_date(value: Any, field: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (TypeError, ValueError):
        raise CoreError(f"{field} must be a date (YYYY-MM-DD)", 400) from None


def is_birthday(dob: Any, today: Optional[date] = None) -> bool:
    if not dob:
        return False
    try:
        born = _parse_date(dob, "dob")
    except CoreError:
        return False
    today = today or date.today()
    return (born.month, born.day) == (today.month, today.day)


class PromoterService:
    def __init__(self, repo: Any, engine: Optional[LevelEngine] = None) -> None:
        self.repo = repo
        self.engine = engine or LevelEngine()

    # -----------------------------
    # Landing / pending status
    # -----------------------------
    async def lookup(self, phone: str) -> Dict[str, Any]:
        phone = validators.require_phone(phone)
        promoter = await self.repo.get_promoter_by_phone(phone)
        if not promoter:
            return {"state": "new", "phone": phone, "promoter": None}
        state = "approved" if promoter.get("is_approved") else "pending"
        return {"state": state, "phone": phone, "promoter": promoter}

    # -----------------------------
    # Registration
    # -----------------------------
    async def register(
        self,
        *,
        full_name: str,
        whatsapp_number: str,
        aadhar_number: str,
        dob: Any,
        avatar_base64: str,
        anniversary_date: Any = None,
    ) -> Dict[str, Any]:
        if not avatar_base64:
            raise CoreError("Please upload your photo", 400)

        name = validators.sanitize_input(validators.require_text(full_name, "Full name"))
        phone = validators.require_phone(whatsapp_number)
        aadhar = validators.require_aadhar(aadhar_number)
        born = _parse_date(dob, "dob")
        anniversary = _parse_date(anniversary_date, "anniversary_date") if anniversary_date else None

        temp_id = str(uuid.uuid4())
        avatar_url, file_name = await store_avatar(self.repo, temp_id, avatar_base64)

        row = {
            "full_name": name,
            "whatsapp_number": phone,
            "aadhar_number": aadhar,
            "dob": born.isoformat(),
            "anniversary_date": anniversary.isoformat() if anniversary else None,
            "avatar_url": avatar_url,
            "is_approved": False,
            "total_points": 0,
            "paid_referrals": 0,
            "free_referrals": 0,
            "current_level": self.engine.classify(0),
        }

        try:
            promoter = await self.repo.insert_promoter(row)
        except DuplicateRecordError as e:
            await self._discard_avatar(file_name)
            if "aadhar" in e.detail.lower():
                raise CoreError("This Aadhar number is already registered", 409)
            raise CoreError("This mobile number is already registered", 409)

        log.info("Registered promoter %s (pending approval)", promoter.get("id"))
        return promoter

    async def _discard_avatar(self, file_name: str) -> None:
        try:
            await self.repo.remove_avatar(file_name)
        except Exception as e:
            log.warning("Could not remove orphaned avatar %s: %s", file_name, e)

    # -----------------------------
    # Dashboard
    # -----------------------------
    async def require_approved(self, promoter_id: str) -> Dict[str, Any]:
        promoter = await self.repo.get_promoter(promoter_id)
        if not promoter:
            raise CoreError("Promoter not found", 404)
        if not promoter.get("is_approved"):
            raise CoreError("Account is pending approval", 403)
        return promoter

    async def dashboard(self, promoter_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        promoter = await self.require_approved(promoter_id)
        referrals = await self.repo.list_referrals_for_promoter(promoter_id)

        level = self.engine.explain(promoter.get("total_points"))
        current = level["progress"]["current_tier"]

        return {
            "promoter": promoter,
            "level": level,
            "badge": badge_for(current).to_dict(),
            "referrals": referrals,
            "referral_counts": {
                "pending": sum(1 for r in referrals if r.get("status") == "pending"),
                "approved": sum(1 for r in referrals if r.get("status") == "approved"),
            },
            "is_birthday": is_birthday(promoter.get("dob"), today),
        }

    # -----------------------------
    # Profile
    # -----------------------------
    async def update_profile(
        self,
        promoter_id: str,
        *,
        full_name: Optional[str] = None,
        dob: Any = None,
        anniversary_date: Any = None,
        avatar_base64: Optional[str] = None,
    ) -> Dict[str, Any]:
        promoter = await self.require_approved(promoter_id)

        patch: Dict[str, Any] = {}
        if full_name is not None:
            patch["full_name"] = validators.sanitize_input(validators.require_text(full_name, "Full name"))
        if dob is not None:
            patch["dob"] = _parse_date(dob, "dob").isoformat()
        if anniversary_date is not None:
            patch["anniversary_date"] = (
                _parse_date(anniversary_date, "anniversary_date").isoformat() if anniversary_date else None
            )
        if avatar_base64:
            patch["avatar_url"], _ = await store_avatar(self.repo, promoter["id"], avatar_base64)

        if not patch:
            return promoter

        updated = await self.repo.update_promoter(promoter_id, patch)
        return updated or {**promoter, **patch}
