"""
Admin Console Service
=====================

Promoter approval and moderation, course management, program stats and
monthly referral analytics for the admin dashboard.

No HTTP here. Routes authenticate the admin and call this.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from apps.backend.repositories.canwin_repository import DuplicateRecordError
from apps.backend.services import validators
from apps.backend.services.core_service import CoreError
from apps.backend.services.levels.badges import badge_for
from apps.backend.services.levels.level_engine import LevelEngine
from apps.backend.services.levels.level_policy import InvalidPointsError, to_points
from apps.backend.services.points import COURSE_TYPES, points_for_course_type

log = logging.getLogger("canwin.admin")

ANALYTICS_MONTHS = 6


# -----------------------------
# Pure helpers
# -----------------------------
def _query(q: Optional[str]) -> str:
    return "".join((q or "").lower().split())


def filter_promoters(promoters: List[Dict[str, Any]], q: Optional[str]) -> List[Dict[str, Any]]:
    query = _query(q)
    if not query:
        return promoters
    return [
        p
        for p in promoters
        if query in (p.get("full_name") or "").lower()
        or query in (p.get("whatsapp_number") or "")
        or query in (p.get("aadhar_number") or "")
        or query in (p.get("custom_id") or "").lower()
    ]


def filter_referrals(referrals: List[Dict[str, Any]], q: Optional[str]) -> List[Dict[str, Any]]:
    query = _query(q)
    if not query:
        return referrals
    return [
        r
        for r in referrals
        if query in (r.get("student_name") or "").lower()
        or query in (r.get("student_contact") or "")
        or query in (r.get("student_aadhar") or "")
        or query in ((r.get("public_users") or {}).get("full_name") or "").lower()
    ]


def program_stats(promoters: List[Dict[str, Any]]) -> Dict[str, int]:
    approved = [p for p in promoters if p.get("is_approved")]
    paid = sum(int(p.get("paid_referrals") or 0) for p in approved)
    free = sum(int(p.get("free_referrals") or 0) for p in approved)
    return {
        "total_users": len(approved),
        "total_points": sum(to_points(p.get("total_points")) for p in approved),
        "paid_referrals": paid,
        "free_referrals": free,
        "total_referrals": paid + free,
    }


def _shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    idx = year * 12 + (month - 1) + delta
    return idx // 12, idx % 12 + 1


def month_window(now: datetime, months: int = ANALYTICS_MONTHS) -> List[Tuple[int, int]]:
    """
    (year, month) pairs for the last `months` calendar months, oldest first,
    ending with the month of `now`.
    """
    return [_shift_month(now.year, now.month, -i) for i in range(months - 1, -1, -1)]


def _parse_ts(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def monthly_breakdown(
    referrals: List[Dict[str, Any]],
    now: datetime,
    months: int = ANALYTICS_MONTHS,
) -> List[Dict[str, Any]]:
    """
    Bucket approved referrals by calendar month of created_at.
    """
    buckets = {
        ym: {"month": validators.month_name(ym[1] - 1), "year": ym[0], "paid": 0, "free": 0, "total": 0, "points": 0}
        for ym in month_window(now, months)
    }
    for r in referrals:
        ts = _parse_ts(r.get("created_at"))
        if ts is None:
            continue
        bucket = buckets.get((ts.year, ts.month))
        if bucket is None:
            continue
        course_type = (r.get("courses") or {}).get("course_type")
        if course_type == "paid":
            bucket["paid"] += 1
        elif course_type == "free":
            bucket["free"] += 1
        bucket["points"] += int(r.get("points_earned") or 0)

    out = []
    for ym in month_window(now, months):
        b = buckets[ym]
        b["total"] = b["paid"] + b["free"]
        out.append(b)
    return out


def course_row(
    *,
    name: str,
    course_type: str,
    description: Optional[str] = None,
    price: Any = 0,
    is_active: bool = True,
    points: Optional[int] = None,
) -> Dict[str, Any]:
    if course_type not in COURSE_TYPES:
        raise CoreError("course_type must be 'paid' or 'free'", 400)
    name = validators.require_text(name, "Course name")

    if course_type == "paid":
        try:
            price_value = Decimal(str(price or 0))
        except InvalidOperation:
            raise CoreError("price must be a number", 400) from None
        if price_value < 0:
            raise CoreError("price cannot be negative", 400)
    else:
        price_value = Decimal("0")

    if points is None:
        points = points_for_course_type(course_type)
    elif points < 0:
        raise CoreError("points cannot be negative", 400)

    return {
        "name": name,
        "description": description or "",
        "course_type": course_type,
        "points": int(points),
        "price": float(price_value),
        "is_active": bool(is_active),
    }


class AdminService:
    def __init__(self, repo: Any, engine: Optional[LevelEngine] = None) -> None:
        self.repo = repo
        self.engine = engine or LevelEngine()

    # -----------------------------
    # Overview
    # -----------------------------
    async def overview(self, q: Optional[str] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
        pending = await self.repo.list_promoters(approved=False)
        everyone = await self.repo.list_promoters()
        referrals = await self.repo.list_pending_referrals()
        courses = await self.repo.list_courses()

        return {
            "stats": program_stats(everyone),
            "pending_promoters": filter_promoters(pending, q),
            "promoters": [self._with_badge(p) for p in filter_promoters(everyone, q)],
            "pending_referrals": filter_referrals(referrals, q),
            "courses": courses,
            "monthly": await self.monthly(now),
        }

    def _with_badge(self, promoter: Dict[str, Any]) -> Dict[str, Any]:
        level = self.engine.classify(promoter.get("total_points"))
        return {**promoter, "badge": badge_for(level).to_dict()}

    async def monthly(self, now: Optional[datetime] = None, months: int = ANALYTICS_MONTHS) -> List[Dict[str, Any]]:
        now = now or datetime.now(timezone.utc)
        window = month_window(now, months)
        first_y, first_m = window[0]
        end_y, end_m = _shift_month(now.year, now.month, 1)
        start = datetime(first_y, first_m, 1, tzinfo=timezone.utc)
        end = datetime(end_y, end_m, 1, tzinfo=timezone.utc)

        rows = await self.repo.list_approved_referrals_between(start.isoformat(), end.isoformat())
        return monthly_breakdown(rows, now, months)

    # -----------------------------
    # Promoter moderation
    # -----------------------------
    async def _require_promoter(self, promoter_id: str) -> Dict[str, Any]:
        promoter = await self.repo.get_promoter(promoter_id)
        if not promoter:
            raise CoreError("Promoter not found", 404)
        return promoter

    async def approve_promoter(self, promoter_id: str) -> Dict[str, Any]:
        promoter = await self._require_promoter(promoter_id)
        updated = await self.repo.update_promoter(promoter_id, {"is_approved": True})
        log.info("Approved promoter %s", promoter_id)
        return updated or {**promoter, "is_approved": True}

    async def delete_promoter(self, promoter_id: str) -> Dict[str, Any]:
        """
        Reject (pending) or delete (approved) a promoter. Referrals go first
        because they reference the promoter row.
        """
        promoter = await self._require_promoter(promoter_id)
        await self.repo.delete_referrals_for_promoter(promoter_id)
        await self.repo.delete_promoter(promoter_id)
        action = "deleted" if promoter.get("is_approved") else "rejected"
        log.info("Promoter %s %s", promoter_id, action)
        return {"id": promoter_id, "action": action}

    async def edit_promoter(self, promoter_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Partial edit. None means "leave unchanged", never "clear".
        """
        promoter = await self._require_promoter(promoter_id)
        fields = {k: v for k, v in fields.items() if v is not None}

        patch: Dict[str, Any] = {}
        if "full_name" in fields:
            patch["full_name"] = validators.sanitize_input(validators.require_text(fields["full_name"], "Full name"))
        if "whatsapp_number" in fields:
            patch["whatsapp_number"] = validators.require_phone(fields["whatsapp_number"])
        if "aadhar_number" in fields:
            patch["aadhar_number"] = validators.require_aadhar(fields["aadhar_number"])
        if "dob" in fields:
            patch["dob"] = fields["dob"]
        if "is_approved" in fields:
            patch["is_approved"] = bool(fields["is_approved"])
        if "total_points" in fields:
            try:
                total = to_points(fields["total_points"])
            except InvalidPointsError as e:
                raise CoreError(str(e), 400)
            patch["total_points"] = total
            patch["current_level"] = self.engine.classify(total)

        if not patch:
            return promoter

        try:
            updated = await self.repo.update_promoter(promoter_id, patch)
        except DuplicateRecordError as e:
            raise CoreError(f"Another promoter already uses these details ({e.detail})", 409)
        return updated or {**promoter, **patch}

    # -----------------------------
    # Courses
    # -----------------------------
    async def create_course(self, **fields: Any) -> Dict[str, Any]:
        row = course_row(**fields)
        course = await self.repo.insert_course(row)
        log.info("Created course %s", course.get("id"))
        return course

    async def update_course(self, course_id: str, **fields: Any) -> Dict[str, Any]:
        existing = await self.repo.get_course(course_id)
        if not existing:
            raise CoreError("Course not found", 404)
        row = course_row(**fields)
        updated = await self.repo.update_course(course_id, row)
        return updated or {**existing, **row}

    async def delete_course(self, course_id: str) -> Dict[str, Any]:
        existing = await self.repo.get_course(course_id)
        if not existing:
            raise CoreError("Course not found", 404)
        try:
            await self.repo.delete_course(course_id)
        except Exception as e:
            log.warning("Course %s delete failed: %s", course_id, e)
            raise CoreError("Failed to delete course. It may have referrals attached.", 409)
        return {"id": course_id, "deleted": True}
