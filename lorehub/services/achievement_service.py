"""
lorehub.services.achievement_service — Achievement Progress & Unlocks
======================================================================

Lifetime counters are recomputed from the social tables on every check
rather than tracked incrementally, so deleted posts, back-filled rows or
manual fixes are always reflected.

Each :class:`~lorehub.engine.achievements.CriteriaType` has one counter
query registered in :data:`COUNTERS`.  An achievement whose criteria tag
has no registered counter is listed but never evaluated.

Unlocks flip ``is_unlocked`` with a conditional UPDATE
(``WHERE is_unlocked = false``); the coin credit happens in the same
transaction, and only for the caller whose UPDATE hit a row.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Engine, func, select, union, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lorehub.constants import NotificationType
from lorehub.database.engine import get_session
from lorehub.database.models import (
    Achievement,
    Bookmark,
    Comment,
    Follow,
    Like,
    Post,
    PostRead,
    UserAchievement,
)
from lorehub.engine.achievements import (
    AchievementContext,
    CriteriaType,
    check_achievements,
)
from lorehub.engine.quests import utcnow
from lorehub.errors import AchievementNotFound, AlreadyUnlocked, ValidationError
from lorehub.services.ledger import credit_coins, get_user, lock_user, require_id
from lorehub.services.notification_service import Notifier, make_notifier, notify_safely

logger = logging.getLogger(__name__)

CounterFn = Callable[[Session, str], int]

COUNTERS: dict[str, CounterFn] = {}


def register_counter(ctype: CriteriaType) -> Callable[[CounterFn], CounterFn]:
    """Register the lifetime counter query for a criteria type."""

    def decorator(fn: CounterFn) -> CounterFn:
        COUNTERS[ctype.value] = fn
        return fn

    return decorator


# ---------------------------------------------------------------------------
# Counter queries
# ---------------------------------------------------------------------------
@register_counter(CriteriaType.POSTS_CREATED)
def count_posts_created(session: Session, user_id: str) -> int:
    return session.scalar(
        select(func.count()).select_from(Post)
        .where(Post.author_id == user_id, Post.status != "deleted")
    ) or 0


@register_counter(CriteriaType.POSTS_READ)
def count_posts_read(session: Session, user_id: str) -> int:
    """Distinct posts the member opened, liked, commented on or bookmarked."""
    touched = union(
        select(PostRead.post_id).where(PostRead.user_id == user_id),
        select(Like.post_id).where(Like.user_id == user_id),
        select(Comment.post_id).where(Comment.author_id == user_id),
        select(Bookmark.post_id).where(Bookmark.user_id == user_id),
    ).subquery()
    return session.scalar(select(func.count()).select_from(touched)) or 0


@register_counter(CriteriaType.COMMENTS_MADE)
def count_comments_made(session: Session, user_id: str) -> int:
    return session.scalar(
        select(func.count()).select_from(Comment).where(Comment.author_id == user_id)
    ) or 0


@register_counter(CriteriaType.LIKES_GIVEN)
def count_likes_given(session: Session, user_id: str) -> int:
    return session.scalar(
        select(func.count()).select_from(Like).where(Like.user_id == user_id)
    ) or 0


@register_counter(CriteriaType.FOLLOWERS_GAINED)
def count_followers_gained(session: Session, user_id: str) -> int:
    return session.scalar(
        select(func.count()).select_from(Follow).where(Follow.following_id == user_id)
    ) or 0


def compute_counters(session: Session, user_id: str) -> dict[str, int]:
    """Evaluate every registered counter for *user_id*."""
    return {ctype: fn(session, user_id) for ctype, fn in COUNTERS.items()}


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AchievementProgress:
    achievement: Achievement
    current_progress: int
    is_unlocked: bool
    unlocked_at: datetime | None

    @property
    def target_value(self) -> int:
        return self.achievement.parsed_criteria.target_value


@dataclass(frozen=True, slots=True)
class UnlockResult:
    achievement_id: str
    title: str
    coins_awarded: int
    new_balance: int
    badge_image_url: str


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------
def _load_definitions(session: Session) -> list[Achievement]:
    """Catalog ordered by reward; rows with unreadable criteria are skipped."""
    definitions = []
    for definition in session.scalars(
        select(Achievement).order_by(Achievement.coin_reward.asc(), Achievement.title)
    ):
        try:
            definition.parsed_criteria
        except ValidationError:
            logger.warning("Skipping achievement %s: malformed criteria", definition.id)
            continue
        definitions.append(definition)
    return definitions


def _get_or_create_record(
    session: Session, user_id: str, achievement_id: str
) -> UserAchievement:
    record = session.get(UserAchievement, (user_id, achievement_id))
    if record is not None:
        return record
    try:
        with session.begin_nested():   # SAVEPOINT
            record = UserAchievement(
                user_id=user_id,
                achievement_id=achievement_id,
                current_progress=0,
                is_unlocked=False,
            )
            session.add(record)
            session.flush()
    except IntegrityError:
        # A concurrent check inserted it first
        record = session.scalar(
            select(UserAchievement).where(
                UserAchievement.user_id == user_id,
                UserAchievement.achievement_id == achievement_id,
            )
        )
    return record


def _flip_unlocked(
    session: Session, user_id: str, achievement_id: str, now: datetime
) -> bool:
    """Mark the record unlocked; ``False`` if another caller got there first."""
    result = session.execute(
        update(UserAchievement)
        .where(
            UserAchievement.user_id == user_id,
            UserAchievement.achievement_id == achievement_id,
            UserAchievement.is_unlocked.is_(False),
        )
        .values(is_unlocked=True, unlocked_at=now)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


def _unlock_payload(achievement: Achievement) -> dict:
    return {
        "related_id": achievement.id,
        "title": achievement.title,
        "coin_reward": achievement.coin_reward,
        "badge_image_url": achievement.badge_image_url,
    }


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def get_all_achievements(engine: Engine) -> list[Achievement]:
    """The achievement catalog, cheapest reward first."""
    with get_session(engine) as session:
        return _load_definitions(session)


def get_user_achievements(engine: Engine, user_id: str) -> list[AchievementProgress]:
    """Progress view over the whole catalog for one member.

    Progress comes from the live counters; achievements the member has no
    record for yet show zero progress and locked.
    """
    require_id(user_id, "user_id")
    with get_session(engine) as session:
        get_user(session, user_id)
        definitions = _load_definitions(session)
        records = {
            r.achievement_id: r
            for r in session.scalars(
                select(UserAchievement).where(UserAchievement.user_id == user_id)
            )
        }
        ctx = AchievementContext(compute_counters(session, user_id))

    views: list[AchievementProgress] = []
    for definition in definitions:
        record = records.get(definition.id)
        live = ctx.progress_for(definition.parsed_criteria)
        if live is None:
            live = record.current_progress if record else 0
        views.append(AchievementProgress(
            achievement=definition,
            current_progress=live,
            is_unlocked=bool(record and record.is_unlocked),
            unlocked_at=record.unlocked_at if record else None,
        ))
    return views


def check_and_unlock_achievements(
    engine: Engine,
    user_id: str,
    *,
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> list[Achievement]:
    """Recompute progress, persist it, and unlock whatever is now earned.

    Returns exactly the achievements unlocked by this call, so a second
    call with no new activity returns ``[]``.  One
    ``achievement_unlocked`` notification per unlock is emitted after the
    transaction commits.
    """
    require_id(user_id, "user_id")
    now = now or utcnow()

    with get_session(engine) as session:
        lock_user(session, user_id)
        definitions = _load_definitions(session)
        by_id = {d.id: d for d in definitions}

        records = {
            r.achievement_id: r
            for r in session.scalars(
                select(UserAchievement).where(UserAchievement.user_id == user_id)
            )
        }
        already_unlocked = {aid for aid, r in records.items() if r.is_unlocked}
        ctx = AchievementContext(compute_counters(session, user_id))

        for definition in definitions:
            if definition.id in already_unlocked:
                continue
            progress = ctx.progress_for(definition.parsed_criteria)
            if progress is None:
                continue
            record = records.get(definition.id) or _get_or_create_record(
                session, user_id, definition.id
            )
            record.current_progress = progress
        session.flush()

        unlocked: list[Achievement] = []
        for achievement_id in check_achievements(definitions, ctx, already_unlocked):
            if not _flip_unlocked(session, user_id, achievement_id, now):
                continue
            achievement = by_id[achievement_id]
            credit_coins(session, user_id, achievement.coin_reward)
            unlocked.append(achievement)

    for achievement in unlocked:
        logger.info(
            "User %s unlocked achievement %r (+%d coins)",
            user_id, achievement.title, achievement.coin_reward,
        )
        notify_safely(
            notifier or make_notifier(engine),
            user_id,
            NotificationType.ACHIEVEMENT_UNLOCKED,
            _unlock_payload(achievement),
        )
    return unlocked


def unlock_achievement(
    engine: Engine,
    user_id: str,
    achievement_id: str,
    *,
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> UnlockResult:
    """Unlock an achievement directly, bypassing its criteria.

    Raises
    ------
    AchievementNotFound
        If the achievement id is unknown.
    AlreadyUnlocked
        If the member already holds it, including when a concurrent call
        unlocked it first.
    """
    require_id(user_id, "user_id")
    require_id(achievement_id, "achievement_id")
    now = now or utcnow()

    with get_session(engine) as session:
        lock_user(session, user_id)
        achievement = session.get(Achievement, achievement_id)
        if achievement is None:
            raise AchievementNotFound(achievement_id)

        _get_or_create_record(session, user_id, achievement_id)
        if not _flip_unlocked(session, user_id, achievement_id, now):
            raise AlreadyUnlocked(achievement_id)
        balance = credit_coins(session, user_id, achievement.coin_reward)

    logger.info(
        "User %s unlocked achievement %r (+%d coins, balance=%d)",
        user_id, achievement.title, achievement.coin_reward, balance,
    )
    notify_safely(
        notifier or make_notifier(engine),
        user_id,
        NotificationType.ACHIEVEMENT_UNLOCKED,
        _unlock_payload(achievement),
    )
    return UnlockResult(
        achievement_id=achievement.id,
        title=achievement.title,
        coins_awarded=achievement.coin_reward,
        new_balance=balance,
        badge_image_url=achievement.badge_image_url,
    )
