"""
lorehub.constants — Shared Constants
=====================================

Single source of truth for cosmetic slots, profile limits and
notification types.  Import from here instead of duplicating in services
and routes.
"""

from __future__ import annotations

import enum


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------
class Role(enum.StrEnum):
    MEMBER = "member"
    MODERATOR = "moderator"
    ADMIN = "admin"


ROLE_RANK: dict[str, int] = {
    Role.MEMBER: 0,
    Role.MODERATOR: 1,
    Role.ADMIN: 2,
}


# ---------------------------------------------------------------------------
# Cosmetic slots: one active inventory item per slot per user
# ---------------------------------------------------------------------------
class SlotType(enum.StrEnum):
    """Shop item type; doubles as the profile slot the item occupies."""
    THEME = "theme"
    BADGE = "badge"
    FRAME = "frame"


# SlotType → User column holding the selected item id
SLOT_FIELDS: dict[SlotType, str] = {
    SlotType.THEME: "selected_theme",
    SlotType.BADGE: "selected_badge",
    SlotType.FRAME: "selected_frame",
}

FIELD_SLOTS: dict[str, SlotType] = {field: slot for slot, field in SLOT_FIELDS.items()}


# ---------------------------------------------------------------------------
# Profile rules
# ---------------------------------------------------------------------------
class EducationLevel(enum.StrEnum):
    JUNIOR_HIGH = "junior_high"
    SENIOR_HIGH = "senior_high"
    UNIVERSITY = "university"


MAX_BIO_LENGTH = 512
PROFILE_PICTURE_EXTENSIONS: tuple[str, ...] = (".jpg", ".jpeg", ".png")

PROFILE_FIELDS: frozenset[str] = frozenset({
    "nickname",
    "bio",
    "profile_picture",
    "education_level",
    "selected_theme",
    "selected_badge",
    "selected_frame",
})


# ---------------------------------------------------------------------------
# Notifications emitted by the reward core
# ---------------------------------------------------------------------------
class NotificationType(enum.StrEnum):
    ACHIEVEMENT_UNLOCKED = "achievement_unlocked"
    QUEST_COMPLETED = "quest_completed"
    POST_LIKED = "post_liked"
    POST_COMMENTED = "post_commented"
    BOOKMARK_REMOVED = "bookmark_removed"
