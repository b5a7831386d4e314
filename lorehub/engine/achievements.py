"""
lorehub.engine.achievements — Achievement Criteria Evaluation
==============================================================

Pure calculation — no database I/O.  Achievement definitions store their
unlock rule as JSON (``{"type": "posts_created", "target_value": 10}``).
This module parses that into a :class:`Criteria` and decides, from a
snapshot of the member's lifetime counters, which achievements are newly
earned.

The counters themselves are computed by
:mod:`lorehub.services.achievement_service`, one query per
:class:`CriteriaType`.
"""

from __future__ import annotations

import enum
import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from lorehub.engine.events import ActionType
from lorehub.errors import ValidationError

if TYPE_CHECKING:
    from lorehub.database.models import Achievement

logger = logging.getLogger(__name__)


class CriteriaType(enum.StrEnum):
    """Lifetime counters an achievement can be keyed on."""
    POSTS_CREATED = "posts_created"
    POSTS_READ = "posts_read"
    COMMENTS_MADE = "comments_made"
    LIKES_GIVEN = "likes_given"
    FOLLOWERS_GAINED = "followers_gained"


MEASURABLE_CRITERIA: frozenset[str] = frozenset(CriteriaType)

# Which actions can move which counter.  The dispatcher subscribes the
# achievement checker to exactly these.
ACTION_TO_CRITERIA: dict[ActionType, tuple[CriteriaType, ...]] = {
    ActionType.POST_CREATED: (CriteriaType.POSTS_CREATED,),
    ActionType.COMMENT_CREATED: (CriteriaType.COMMENTS_MADE, CriteriaType.POSTS_READ),
    ActionType.POST_LIKED: (CriteriaType.LIKES_GIVEN, CriteriaType.POSTS_READ),
    ActionType.POST_BOOKMARKED: (CriteriaType.POSTS_READ,),
    ActionType.POST_READ: (CriteriaType.POSTS_READ,),
    ActionType.USER_FOLLOWED: (CriteriaType.FOLLOWERS_GAINED,),
}


# ---------------------------------------------------------------------------
# Criteria
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Criteria:
    """Structured unlock rule: reach ``target_value`` on counter ``type``.

    ``type`` stays a plain string so definitions seeded with a tag this
    version doesn't measure still load; they are simply never evaluated.
    """

    type: str
    target_value: int

    def to_json(self) -> dict[str, Any]:
        return {"type": self.type, "target_value": self.target_value}

    @property
    def measurable(self) -> bool:
        return self.type in MEASURABLE_CRITERIA


def parse_criteria(raw: str | dict | None) -> Criteria:
    """Deserialize a stored criteria value.

    Accepts the JSON column value (a dict) or a JSON string.  The legacy
    camelCase key ``targetValue`` is read as well.

    Raises
    ------
    ValidationError
        If the value is not an object with a type tag and a non-negative
        integer target.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValidationError("Criteria is not valid JSON", {"raw": raw}) from exc
    if not isinstance(raw, dict):
        raise ValidationError("Criteria must be an object", {"raw": raw})

    ctype = raw.get("type")
    target = raw.get("target_value", raw.get("targetValue"))
    if not ctype or not isinstance(ctype, str):
        raise ValidationError("Criteria type is required", {"raw": raw})
    if isinstance(target, bool) or not isinstance(target, int) or target < 0:
        raise ValidationError("Criteria target must be a non-negative integer", {"raw": raw})
    return Criteria(type=ctype, target_value=target)


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AchievementContext:
    """Snapshot of a member's lifetime counters, keyed by criteria type."""

    counters: dict[str, int] = field(default_factory=dict)

    def progress_for(self, criteria: Criteria) -> int | None:
        """Current value of the criteria's counter, or ``None`` if unmeasured."""
        if criteria.type not in self.counters:
            return None
        return self.counters[criteria.type]


def check_achievements(
    definitions: Iterable[Achievement],
    ctx: AchievementContext,
    already_unlocked: set[str],
) -> list[str]:
    """Return ids of definitions whose criteria are met and not yet unlocked.

    Already-unlocked achievements are skipped unconditionally, even if
    their counter has since dropped below the target.
    """
    newly_earned: list[str] = []
    for definition in definitions:
        if definition.id in already_unlocked:
            continue
        criteria = definition.parsed_criteria
        progress = ctx.progress_for(criteria)
        if progress is None:
            continue
        if progress >= criteria.target_value:
            newly_earned.append(definition.id)
            logger.debug(
                "Achievement criteria met: %s (%s %d/%d)",
                definition.title, criteria.type, progress, criteria.target_value,
            )
    return newly_earned
