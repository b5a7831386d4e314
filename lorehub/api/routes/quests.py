"""
lorehub.api.routes.quests — Daily quest listing & claims
=========================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from lorehub.api.deps import get_config, get_current_user, get_engine
from lorehub.config import LorehubConfig
from lorehub.database.models import Quest
from lorehub.engine.quests import as_utc, is_expired
from lorehub.services import quest_service

router = APIRouter(prefix="/quests", tags=["quests"])


def _quest_dict(q: Quest) -> dict:
    return {
        "id": q.id,
        "type": q.type,
        "title": q.title,
        "description": q.description,
        "target_amount": q.target_amount,
        "current_amount": q.current_amount,
        "reward": q.reward,
        "is_completed": q.is_completed,
        "is_claimed": q.is_claimed,
        "is_expired": is_expired(q.expires_at),
        "expires_at": as_utc(q.expires_at).isoformat(),
        "created_at": as_utc(q.created_at).isoformat() if q.created_at else None,
    }


@router.get("")
def list_quests(
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
    cfg: LorehubConfig = Depends(get_config),
):
    """Today's quests for the caller, generated on first visit."""
    quests = quest_service.generate_daily_quests(
        engine, user["sub"], catalog=cfg.quest_catalog,
    )
    return {"quests": [_quest_dict(q) for q in quests]}


@router.get("/history")
def quest_history(
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    quests = quest_service.get_user_quests(engine, user["sub"])
    return {"quests": [_quest_dict(q) for q in quests]}


@router.post("/{quest_id}/claim")
def claim_quest(
    quest_id: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    result = quest_service.claim_quest_reward(engine, user["sub"], quest_id)
    return {
        "quest_id": result.quest_id,
        "coins_awarded": result.coins_awarded,
        "new_balance": result.new_balance,
    }
