"""
Level Policy (Canonical)
========================

Single source of truth for the CanWin membership tier table.

Key requirements implemented:
- Tiers are contiguous brackets of cumulative points with an inclusive lower bound.
- The first tier starts at 0 so every point total maps to exactly one tier.
- Thresholds and ranks strictly increase together.

Non-goals:
- No DB access (pure domain rules).
- No HTTP / FastAPI logic.
"""

from __future__ import annotations

import math
from bisect import bisect_right
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple


class InvalidPointsError(ValueError):
    """Raised when a point total is not a number at all."""


def to_points(value: Any) -> int:
    """
    Normalise a point total to a non-negative int.

    None counts as 0 and negatives clamp to 0. Integral strings (as returned
    by PostgREST for bigint columns) are accepted.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        raise InvalidPointsError(f"points must be numeric, got {value!r}")
    if isinstance(value, int):
        points = value
    elif isinstance(value, (float, Decimal)):
        if not math.isfinite(value):
            raise InvalidPointsError(f"points must be finite, got {value!r}")
        points = int(value)
    elif isinstance(value, str):
        try:
            points = int(value.strip())
        except ValueError:
            raise InvalidPointsError(f"points must be numeric, got {value!r}") from None
    else:
        raise InvalidPointsError(f"points must be numeric, got {type(value).__name__}")
    return max(0, points)


@dataclass(frozen=True)
class Tier:
    """
    A tier is defined by a minimum cumulative points threshold.

    Example:
        Bronze: min_points = 0
        Silver: min_points = 100
    """
    key: str
    name: str
    min_points: int
    order: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "min_points": self.min_points,
            "order": self.order,
        }


@dataclass(frozen=True)
class LevelPolicy:
    """
    Top-level tier table. Validated once on construction; immutable afterwards.
    """
    tiers: Tuple[Tier, ...] = field(default_factory=tuple)
    version: str = "2025-02-bronze-pearl"

    def __post_init__(self) -> None:
        if not self.tiers:
            object.__setattr__(self, "tiers", tuple(self.default_tiers()))
        else:
            object.__setattr__(self, "tiers", tuple(sorted(self.tiers, key=lambda t: t.min_points)))

        self._validate()

    # -----------------------------
    # Defaults
    # -----------------------------
    @staticmethod
    def default_tiers() -> List[Tier]:
        return [
            Tier(key="bronze", name="Bronze", min_points=0, order=1),
            Tier(key="silver", name="Silver", min_points=100, order=2),
            Tier(key="gold", name="Gold", min_points=250, order=3),
            Tier(key="diamond", name="Diamond", min_points=500, order=4),
            Tier(key="pearl", name="Pearl", min_points=1000, order=5),
        ]

    # -----------------------------
    # Validation
    # -----------------------------
    def _validate(self) -> None:
        seen_keys = set()
        seen_names = set()
        for t in self.tiers:
            if not t.key.strip():
                raise ValueError("tier.key cannot be empty")
            if not t.name.strip():
                raise ValueError("tier.name cannot be empty")
            if t.key in seen_keys:
                raise ValueError(f"duplicate tier key: {t.key}")
            if t.name in seen_names:
                raise ValueError(f"duplicate tier name: {t.name}")
            seen_keys.add(t.key)
            seen_names.add(t.name)

        if self.tiers[0].min_points != 0:
            raise ValueError("first tier must have min_points = 0")

        for lower, upper in zip(self.tiers, self.tiers[1:]):
            if upper.min_points <= lower.min_points:
                raise ValueError(
                    f"tier thresholds must strictly increase: {lower.name} -> {upper.name}"
                )
            if upper.order <= lower.order:
                raise ValueError(
                    f"tier order must strictly increase with min_points: {lower.name} -> {upper.name}"
                )

    # -----------------------------
    # Tier lookup
    # -----------------------------
    def tier_for_points(self, total_points: Any) -> Tier:
        """
        Highest tier whose threshold is <= the (clamped) total.
        """
        points = to_points(total_points)
        idx = bisect_right([t.min_points for t in self.tiers], points) - 1
        return self.tiers[idx]

    def tier_above(self, tier: Tier) -> Optional[Tier]:
        idx = self.tiers.index(tier)
        if idx + 1 < len(self.tiers):
            return self.tiers[idx + 1]
        return None

    def tier_by_name(self, name: str) -> Optional[Tier]:
        for t in self.tiers:
            if t.name == name:
                return t
        return None

    @property
    def lowest(self) -> Tier:
        return self.tiers[0]

    @property
    def terminal(self) -> Tier:
        return self.tiers[-1]

    # -----------------------------
    # Serialization
    # -----------------------------
    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "tiers": [t.to_dict() for t in self.tiers],
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "LevelPolicy":
        """
        Build a policy from a dict (e.g. a JSON config file).
        Missing or empty tier lists fall back to the canonical defaults.
        """
        data = data or {}
        tiers: List[Tier] = []
        for i, t in enumerate(data.get("tiers") or [], start=1):
            if not isinstance(t, dict):
                continue
            key = str(t.get("key", "")).strip()
            tiers.append(
                Tier(
                    key=key,
                    name=str(t.get("name", "")).strip() or key.title(),
                    min_points=int(t.get("min_points", 0)),
                    order=int(t.get("order", i)),
                )
            )
        return LevelPolicy(
            tiers=tuple(tiers),
            version=str(data.get("version", "2025-02-bronze-pearl")),
        )
