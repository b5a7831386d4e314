"""
lorehub.api.routes.admin — Admin-only reward operations (JWT + role gate)
==========================================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from lorehub.api.deps import get_engine, require_admin
from lorehub.services import achievement_service, quest_service

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)


class GrantAchievement(BaseModel):
    user_id: str


@router.post("/achievements/{achievement_id}/grant")
def grant_achievement(
    achievement_id: str,
    body: GrantAchievement,
    admin: dict = Depends(require_admin),
    engine=Depends(get_engine),
):
    result = achievement_service.unlock_achievement(engine, body.user_id, achievement_id)
    logger.info(
        "Admin %s granted achievement %s to %s", admin["sub"], achievement_id, body.user_id,
    )
    return {
        "achievement_id": result.achievement_id,
        "coins_awarded": result.coins_awarded,
        "new_balance": result.new_balance,
        "badge_image_url": result.badge_image_url,
    }


@router.post("/quests/sweep")
def sweep_quests(
    admin: dict = Depends(require_admin),
    engine=Depends(get_engine),
):
    deleted = quest_service.reset_daily_quests(engine)
    logger.info("Admin %s ran the quest sweep (%d removed)", admin["sub"], deleted)
    return {"deleted": deleted}
