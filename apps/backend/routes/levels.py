from fastapi import APIRouter, Query

from apps.backend.services.levels.badges import BadgeStyle, badge_for
from apps.backend.services.levels.level_engine import DEFAULT_ENGINE
from apps.backend.utils.envelope import ok

router = APIRouter(prefix="/levels", tags=["levels"])


@router.get("")
async def level_table():
    policy = DEFAULT_ENGINE.policy
    return ok(
        data={
            **policy.to_dict(),
            "badges": [b.to_dict() for b in BadgeStyle],
        }
    )


@router.get("/progress")
async def level_progress(points: str = Query(default="0")):
    explained = DEFAULT_ENGINE.explain(points)
    explained["badge"] = badge_for(explained["progress"]["current_tier"]).to_dict()
    return ok(data=explained)
