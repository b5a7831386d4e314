"""
lorehub.engine.quests — Quest Catalog & Progress Rules
=======================================================

Pure calculation for the daily quest lifecycle.  No database I/O.

The catalog is an explicit, injectable table of :class:`QuestTemplate`
rows.  Each template names the :class:`ActionType` that advances it, so
the dispatcher can subscribe quest progress without the social services
knowing which quests exist.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta

from lorehub.engine.events import ActionType
from lorehub.errors import ValidationError

DEFAULT_QUEST_DURATION_HOURS = 24


@dataclass(frozen=True, slots=True)
class QuestTemplate:
    """One entry in the daily quest catalog."""

    type: str
    title: str
    description: str
    target_amount: int
    reward: int
    action: ActionType

    def __post_init__(self) -> None:
        if not self.type:
            raise ValidationError("Quest type is required")
        if self.target_amount <= 0:
            raise ValidationError(
                "Quest target must be positive",
                {"type": self.type, "target_amount": self.target_amount},
            )
        if self.reward < 0:
            raise ValidationError(
                "Quest reward must not be negative",
                {"type": self.type, "reward": self.reward},
            )
        # Accept plain strings from YAML
        object.__setattr__(self, "action", ActionType(self.action))


@dataclass(frozen=True, slots=True)
class QuestCatalog:
    """The set of quests every member receives each cycle."""

    templates: tuple[QuestTemplate, ...]
    duration_hours: int = DEFAULT_QUEST_DURATION_HOURS

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for tmpl in self.templates:
            if tmpl.type in seen:
                raise ValidationError("Duplicate quest type", {"type": tmpl.type})
            seen.add(tmpl.type)
        if self.duration_hours <= 0:
            raise ValidationError(
                "Quest duration must be positive",
                {"duration_hours": self.duration_hours},
            )

    def types(self) -> tuple[str, ...]:
        return tuple(t.type for t in self.templates)

    def get(self, quest_type: str) -> QuestTemplate | None:
        for tmpl in self.templates:
            if tmpl.type == quest_type:
                return tmpl
        return None

    def for_action(self, action: ActionType) -> list[QuestTemplate]:
        """Templates advanced by *action*."""
        return [t for t in self.templates if t.action == action]

    def expires_at(self, now: datetime) -> datetime:
        return now + timedelta(hours=self.duration_hours)

    def with_duration(self, hours: int) -> QuestCatalog:
        return replace(self, duration_hours=hours)


DEFAULT_QUEST_CATALOG = QuestCatalog(
    templates=(
        QuestTemplate(
            type="create_post",
            title="Share something new",
            description="Create 1 post",
            target_amount=1,
            reward=50,
            action=ActionType.POST_CREATED,
        ),
        QuestTemplate(
            type="comment_post",
            title="Join the discussion",
            description="Comment on posts 3 times",
            target_amount=3,
            reward=30,
            action=ActionType.COMMENT_CREATED,
        ),
        QuestTemplate(
            type="like_post",
            title="Spread the love",
            description="Like 5 posts",
            target_amount=5,
            reward=20,
            action=ActionType.POST_LIKED,
        ),
    ),
)


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------
def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps (SQLite drops the offset on read)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def is_expired(expires_at: datetime, now: datetime | None = None) -> bool:
    """A quest is expired once ``now`` reaches ``expires_at``."""
    now = as_utc(now) if now is not None else utcnow()
    return as_utc(expires_at) <= now


# ---------------------------------------------------------------------------
# Progress rules
# ---------------------------------------------------------------------------
def validate_delta(delta: int) -> int:
    if isinstance(delta, bool) or not isinstance(delta, int) or delta <= 0:
        raise ValidationError("Progress delta must be a positive integer", {"delta": delta})
    return delta
