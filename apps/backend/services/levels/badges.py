"""
Badge styles per tier, consumed by the dashboard and admin views.

Presentation config only: the engine never reads it.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict

from .level_policy import LevelPolicy


class BadgeStyle(Enum):
    # tier name -> (icon, color, css class)
    BRONZE = ("Bronze", "award", "#cd7f32", "badge-bronze")
    SILVER = ("Silver", "shield", "#c0c0c0", "badge-silver")
    GOLD = ("Gold", "crown", "#f5b301", "badge-gold")
    DIAMOND = ("Diamond", "gem", "#5ec8e5", "badge-diamond")
    PEARL = ("Pearl", "sparkles", "#eae0c8", "badge-pearl")

    def __init__(self, tier_name: str, icon: str, color: str, css_class: str) -> None:
        self.tier_name = tier_name
        self.icon = icon
        self.color = color
        self.css_class = css_class

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tier": self.tier_name,
            "icon": self.icon,
            "color": self.color,
            "css_class": self.css_class,
        }


_BY_NAME = {b.tier_name: b for b in BadgeStyle}


def badge_for(tier_name: str) -> BadgeStyle:
    """
    Badge for a tier name. Unknown labels (rows written under an older tier
    scheme) get the lowest tier's badge.
    """
    return _BY_NAME.get(tier_name or "", BadgeStyle.BRONZE)


def missing_badges(policy: LevelPolicy) -> list:
    return [t.name for t in policy.tiers if t.name not in _BY_NAME]
