"""
lorehub.api.routes.users — Caller profile & notifications
=======================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from lorehub.api.deps import get_current_user, get_engine
from lorehub.database.engine import get_session
from lorehub.database.models import User
from lorehub.engine.quests import as_utc
from lorehub.services.ledger import get_user
from lorehub.services.notification_service import (
    get_notifications,
    get_unread_count,
    mark_all_as_read,
    mark_as_read,
)
from lorehub.services.profile_service import update_profile

router = APIRouter(prefix="/users", tags=["users"])


class ProfileUpdate(BaseModel):
    nickname: str | None = None
    bio: str | None = None
    profile_picture: str | None = None
    education_level: str | None = None
    selected_theme: str | None = None
    selected_badge: str | None = None
    selected_frame: str | None = None


def _user_dict(u: User) -> dict:
    return {
        "id": u.id,
        "email": u.email,
        "name": u.name,
        "nickname": u.nickname,
        "bio": u.bio,
        "profile_picture": u.profile_picture,
        "education_level": u.education_level,
        "role": u.role,
        "coins": u.coins,
        "selected_theme": u.selected_theme,
        "selected_badge": u.selected_badge,
        "selected_frame": u.selected_frame,
    }


@router.get("/me")
def me(
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with get_session(engine) as session:
        return _user_dict(get_user(session, user["sub"]))


@router.patch("/me")
def update_me(
    body: ProfileUpdate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    # Only fields present in the body; an explicit null clears the field
    updates = body.model_dump(exclude_unset=True)
    return _user_dict(update_profile(engine, user["sub"], updates))


@router.get("/me/notifications")
def my_notifications(
    unread_only: bool = False,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    rows = get_notifications(engine, user["sub"], unread_only=unread_only)
    return {
        "notifications": [
            {
                "id": n.id,
                "type": n.type,
                "title": n.title,
                "message": n.message,
                "related_id": n.related_id,
                "is_read": n.is_read,
                "created_at": as_utc(n.created_at).isoformat(),
            }
            for n in rows
        ]
    }


@router.get("/me/notifications/unread-count")
def unread_count(
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return {"unread": get_unread_count(engine, user["sub"])}


@router.post("/me/notifications/read-all")
def read_all(
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return {"marked": mark_all_as_read(engine, user["sub"])}


@router.post("/me/notifications/{notification_id}/read")
def read_one(
    notification_id: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    mark_as_read(engine, user["sub"], notification_id)
    return {"id": notification_id, "is_read": True}
