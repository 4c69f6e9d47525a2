# apps/backend/services/points.py
"""
Points rules for referrals.

Pure helpers: callers persist the returned values.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from apps.backend.services.levels.level_engine import LevelEngine, DEFAULT_ENGINE
from apps.backend.services.levels.level_policy import to_points

COURSE_TYPES = ("paid", "free")

# Points credited per approved referral, by course type
POINTS = {
    "paid": 10,
    "free": 2,
}


def points_for_course_type(course_type: str) -> int:
    if course_type not in POINTS:
        raise ValueError(f"unknown course_type: {course_type!r}")
    return POINTS[course_type]


def course_points(course: Dict[str, Any]) -> int:
    """
    Points a course is worth. A stored per-course value wins over the type default.
    """
    stored = course.get("points")
    if stored is not None:
        return to_points(stored)
    return points_for_course_type(str(course.get("course_type") or "free"))


def credit_referral(
    promoter: Dict[str, Any],
    course: Dict[str, Any],
    engine: Optional[LevelEngine] = None,
) -> Dict[str, Any]:
    """
    Promoter column patch for one approved referral.

    Returns the fields to write back on `public_users` plus `points_earned`
    for the referral row.
    """
    engine = engine or DEFAULT_ENGINE
    earned = course_points(course)
    total = to_points(promoter.get("total_points")) + earned

    patch: Dict[str, Any] = {
        "total_points": total,
        "current_level": engine.classify(total),
    }
    if course.get("course_type") == "paid":
        patch["paid_referrals"] = int(promoter.get("paid_referrals") or 0) + 1
    else:
        patch["free_referrals"] = int(promoter.get("free_referrals") or 0) + 1

    return {"promoter_patch": patch, "points_earned": earned}
