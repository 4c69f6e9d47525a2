"""
Referral Service
================

Student referral submission by promoters and verification by admins.

Points are only credited when an admin verifies a referral: the course's
points are added to the promoter's total, the paid/free counter is bumped and
the level label is recomputed by the LevelEngine.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from apps.backend.services import validators
from apps.backend.services.core_service import CoreError
from apps.backend.services.levels.level_engine import LevelEngine
from apps.backend.services.points import credit_referral

log = logging.getLogger("canwin.referrals")

PENDING = "pending"
APPROVED = "approved"


class ReferralService:
    def __init__(self, repo: Any, engine: Optional[LevelEngine] = None) -> None:
        self.repo = repo
        self.engine = engine or LevelEngine()

    # -----------------------------
    # Courses
    # -----------------------------
    async def active_courses(self) -> List[Dict[str, Any]]:
        return await self.repo.list_courses(active_only=True)

    # -----------------------------
    # Submission
    # -----------------------------
    async def submit(
        self,
        *,
        promoter_id: str,
        course_id: str,
        student_name: str,
        student_contact: str,
        student_aadhar: str,
    ) -> Dict[str, Any]:
        promoter = await self.repo.get_promoter(promoter_id)
        if not promoter:
            raise CoreError("Promoter not found", 404)
        if not promoter.get("is_approved"):
            raise CoreError("Account is pending approval", 403)

        name = validators.sanitize_input(validators.require_text(student_name, "Student name"))
        contact = validators.sanitize_input(validators.require_text(student_contact, "Student contact"))
        aadhar = validators.require_aadhar(student_aadhar)

        course = await self.repo.get_course(course_id) if course_id else None
        if not course or not course.get("is_active"):
            raise CoreError("Select an active course", 400)

        referral = await self.repo.insert_referral(
            {
                "referrer_id": promoter["id"],
                "course_id": course["id"],
                "student_name": name,
                "student_contact": contact,
                "student_aadhar": aadhar,
                "status": PENDING,
            }
        )
        log.info("Referral submitted by %s for course %s", promoter["id"], course["id"])
        return referral

    # -----------------------------
    # Verification (admin)
    # -----------------------------
    async def verify(self, referral_id: str) -> Dict[str, Any]:
        referral = await self.repo.get_referral(referral_id)
        if not referral:
            raise CoreError("Referral not found", 404)

        if referral.get("status") == APPROVED:
            return {"referral": referral, "credited": False, "level_change": None}
        if referral.get("status") != PENDING:
            raise CoreError(f"Referral is {referral.get('status')}, cannot approve", 409)

        promoter = await self.repo.get_promoter(referral["referrer_id"])
        if not promoter:
            raise CoreError("Referrer no longer exists", 409)
        course = await self.repo.get_course(referral["course_id"])
        if not course:
            raise CoreError("Referral course no longer exists", 409)

        credit = credit_referral(promoter, course, self.engine)
        level_change = self.engine.would_advance(
            total_points=promoter.get("total_points"),
            points_delta=credit["points_earned"],
        )

        # the conditional claim is the lock: only one caller moves pending -> approved
        claimed = await self.repo.claim_pending_referral(
            referral_id, {"status": APPROVED, "points_earned": credit["points_earned"]}
        )
        if not claimed:
            current = await self.repo.get_referral(referral_id)
            if current and current.get("status") == APPROVED:
                return {"referral": current, "credited": False, "level_change": None}
            raise CoreError("Referral is no longer pending", 409)

        try:
            await self.repo.update_promoter(promoter["id"], credit["promoter_patch"])
        except Exception as e:
            log.error("Crediting promoter %s for referral %s failed: %s", promoter["id"], referral_id, e)
            await self.repo.update_referral(referral_id, {"status": PENDING, "points_earned": None})
            raise CoreError("Failed to credit points. Please try again.", 502)

        if level_change["advanced"]:
            log.info(
                "Promoter %s advanced %s -> %s",
                promoter["id"],
                level_change["before"],
                level_change["after"],
            )

        return {
            "referral": claimed,
            "credited": True,
            "points_earned": credit["points_earned"],
            "promoter_totals": credit["promoter_patch"],
            "level_change": level_change,
        }
