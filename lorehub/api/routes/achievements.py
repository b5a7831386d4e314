"""
lorehub.api.routes.achievements — Achievement catalog & member progress
========================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from lorehub.api.deps import get_current_user, get_engine
from lorehub.database.models import Achievement
from lorehub.engine.quests import as_utc
from lorehub.services import achievement_service

router = APIRouter(prefix="/achievements", tags=["achievements"])


def _achievement_dict(a: Achievement) -> dict:
    return {
        "id": a.id,
        "title": a.title,
        "description": a.description,
        "badge_image_url": a.badge_image_url,
        "coin_reward": a.coin_reward,
        "criteria": a.parsed_criteria.to_json(),
    }


@router.get("")
def list_achievements(engine=Depends(get_engine)):
    return {
        "achievements": [
            _achievement_dict(a) for a in achievement_service.get_all_achievements(engine)
        ]
    }


@router.get("/me")
def my_achievements(
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    views = achievement_service.get_user_achievements(engine, user["sub"])
    return {
        "achievements": [
            {
                **_achievement_dict(v.achievement),
                "current_progress": v.current_progress,
                "target_value": v.target_value,
                "is_unlocked": v.is_unlocked,
                "unlocked_at": as_utc(v.unlocked_at).isoformat() if v.unlocked_at else None,
            }
            for v in views
        ]
    }


@router.post("/check")
def check_achievements(
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    unlocked = achievement_service.check_and_unlock_achievements(engine, user["sub"])
    return {"unlocked": [_achievement_dict(a) for a in unlocked]}
