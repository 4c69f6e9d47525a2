"""
Level Engine (Canonical)
========================

Purpose:
- Deterministic level computation based ONLY on a promoter's cumulative points.
- No side effects, no DB access, no HTTP.
- Produces progress payloads for the promoter dashboard, admin analytics and badges.

The engine is stateless: levels are a label derived from the point total and
are recomputed on every call. It never tracks or enforces transitions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .level_policy import LevelPolicy, Tier, to_points


@dataclass(frozen=True)
class ProgressResult:
    """
    Snapshot of a promoter's position inside the tier table.
    """
    current_tier: str
    next_tier: Optional[str]
    progress_percent: float
    points_remaining: int
    points_into_tier: int

    @property
    def is_top_tier(self) -> bool:
        return self.next_tier is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_tier": self.current_tier,
            "next_tier": self.next_tier,
            "progress_percent": self.progress_percent,
            "points_remaining": self.points_remaining,
            "points_into_tier": self.points_into_tier,
            "is_top_tier": self.is_top_tier,
        }


class LevelEngine:
    """
    Canonical level computation engine.
    """

    def __init__(self, policy: Optional[LevelPolicy] = None) -> None:
        self.policy = policy or LevelPolicy()

    # -----------------------------
    # Core evaluation
    # -----------------------------
    def tier_for(self, total_points: Any) -> Tier:
        return self.policy.tier_for_points(total_points)

    def classify(self, total_points: Any) -> str:
        """
        Name of the tier matching a point total. Missing or negative totals
        fall back to the lowest tier.
        """
        return self.tier_for(total_points).name

    def progress(self, total_points: Any) -> ProgressResult:
        """
        Compute the current tier and progress toward the next one.
        """
        points = to_points(total_points)
        current = self.policy.tier_for_points(points)
        nxt = self.policy.tier_above(current)
        into = points - current.min_points

        if nxt is None:
            return ProgressResult(
                current_tier=current.name,
                next_tier=None,
                progress_percent=100.0,
                points_remaining=0,
                points_into_tier=into,
            )

        span = nxt.min_points - current.min_points
        percent = min(100.0, (into / span) * 100)

        return ProgressResult(
            current_tier=current.name,
            next_tier=nxt.name,
            progress_percent=percent,
            points_remaining=max(0, nxt.min_points - points),
            points_into_tier=into,
        )

    # -----------------------------
    # Comparison helpers
    # -----------------------------
    def would_advance(self, *, total_points: Any, points_delta: int) -> Dict[str, Any]:
        """
        Whether crediting `points_delta` moves the promoter to a higher tier.
        Used by the referral approval flow to log level-ups. No state mutation.
        """
        before = self.tier_for(total_points)
        after = self.tier_for(to_points(total_points) + max(0, int(points_delta)))
        return {
            "advanced": after.order > before.order,
            "before": before.name,
            "after": after.name,
        }

    def explain(self, total_points: Any) -> Dict[str, Any]:
        """
        Plain-language payload for the dashboard progress text.
        """
        result = self.progress(total_points)
        if result.is_top_tier:
            message = f"Maximum level reached ({result.current_tier})."
        else:
            message = f"{result.points_remaining} pts to {result.next_tier}"

        nxt = self.policy.tier_by_name(result.next_tier) if result.next_tier else None
        return {
            "progress": result.to_dict(),
            "total_points": to_points(total_points),
            "next_threshold": None if nxt is None else nxt.min_points,
            "message": message,
        }


# ---------------------------------------
# Process-wide default engine
# ---------------------------------------
DEFAULT_ENGINE = LevelEngine()


def classify(total_points: Any) -> str:
    return DEFAULT_ENGINE.classify(total_points)


def progress(total_points: Any) -> ProgressResult:
    return DEFAULT_ENGINE.progress(total_points)
