"""
lorehub.services.profile_service — Member Profile Edits
========================================================

Validates and applies ``PATCH /api/users/me`` payloads.  Cosmetic
``selected_*`` fields are not written directly: they go through the same
activation routine as the shop so the single-active-item-per-slot rule
holds whichever path the member uses.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import Engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lorehub.constants import (
    FIELD_SLOTS,
    MAX_BIO_LENGTH,
    PROFILE_FIELDS,
    PROFILE_PICTURE_EXTENSIONS,
    EducationLevel,
)
from lorehub.database.engine import get_session
from lorehub.database.models import User
from lorehub.errors import ConflictError, ItemNotInInventory, ValidationError
from lorehub.services.ledger import lock_user, require_id
from lorehub.services.shop_service import activate_owned_item, clear_slot, find_inventory_entry

logger = logging.getLogger(__name__)

MAX_NICKNAME_LENGTH = 50


def _validate_text_fields(updates: Mapping[str, Any]) -> None:
    if "nickname" in updates and updates["nickname"] is not None:
        nickname = updates["nickname"]
        if not isinstance(nickname, str) or not nickname.strip():
            raise ValidationError("Nickname must be a non-empty string")
        if len(nickname) > MAX_NICKNAME_LENGTH:
            raise ValidationError(
                f"Nickname must be at most {MAX_NICKNAME_LENGTH} characters",
                {"length": len(nickname)},
            )

    if "bio" in updates and updates["bio"] is not None:
        bio = updates["bio"]
        if not isinstance(bio, str):
            raise ValidationError("Bio must be a string")
        if len(bio) > MAX_BIO_LENGTH:
            raise ValidationError(
                f"Bio must be at most {MAX_BIO_LENGTH} characters",
                {"length": len(bio)},
            )

    if "profile_picture" in updates and updates["profile_picture"] is not None:
        picture = updates["profile_picture"]
        if not isinstance(picture, str) or not picture.lower().endswith(
            PROFILE_PICTURE_EXTENSIONS
        ):
            raise ValidationError(
                "Profile picture must be a .jpg, .jpeg or .png file",
                {"profile_picture": picture},
            )

    if "education_level" in updates and updates["education_level"] is not None:
        level = updates["education_level"]
        if level not in set(EducationLevel):
            raise ValidationError(
                "Invalid education level",
                {"education_level": level, "allowed": [e.value for e in EducationLevel]},
            )


def _apply_slot(session: Session, user: User, field: str, item_id: str | None) -> None:
    slot = FIELD_SLOTS[field]
    if item_id is None:
        clear_slot(session, user, slot)
        return

    require_id(item_id, field)
    entry = find_inventory_entry(session, user.id, item_id)
    if entry is None:
        raise ItemNotInInventory(field, item_id)
    if entry.item.type != slot.value:
        raise ValidationError(
            f"{field} must reference a {slot.value} item",
            {"field": field, "item_id": item_id, "item_type": entry.item.type},
        )
    activate_owned_item(session, user, entry)


def update_profile(engine: Engine, user_id: str, updates: Mapping[str, Any]) -> User:
    """Apply a partial profile update and return the refreshed user.

    Raises
    ------
    ValidationError
        Unknown field, over-long bio, bad picture extension, unknown
        education level, or a cosmetic of the wrong slot type.
    ItemNotInInventory
        A ``selected_*`` value the member does not own.
    ConflictError
        Nickname already taken.
    """
    require_id(user_id, "user_id")
    unknown = set(updates) - PROFILE_FIELDS
    if unknown:
        raise ValidationError("Unknown profile fields", {"fields": sorted(unknown)})
    _validate_text_fields(updates)

    with get_session(engine) as session:
        user = lock_user(session, user_id)

        nickname = updates.get("nickname")
        if nickname is not None and nickname != user.nickname:
            taken = session.scalar(
                select(User.id).where(User.nickname == nickname, User.id != user_id)
            )
            if taken is not None:
                raise ConflictError("Nickname already taken", {"nickname": nickname})

        for field in ("nickname", "bio", "profile_picture", "education_level"):
            if field in updates:
                setattr(user, field, updates[field])

        for field in FIELD_SLOTS:
            if field in updates:
                _apply_slot(session, user, field, updates[field])

        try:
            session.flush()
        except IntegrityError as exc:
            raise ConflictError("Nickname already taken", {"nickname": nickname}) from exc

    logger.info("User %s updated profile fields %s", user_id, sorted(updates))
    return user
