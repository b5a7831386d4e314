"""
lorehub.services.quest_service — Daily Quest Lifecycle
=======================================================

Generation, progress, claim and expiry sweep for per-user daily quests.

State machine per quest row::

    active ──(current >= target)──▶ completed ──(claim)──▶ claimed
       │                               │
       └──────────(expires_at <= now)──┴──▶ expired ──(sweep)──▶ deleted

* ``current_amount`` only grows, and only through a single SQL
  ``current_amount = current_amount + :delta``.
* ``is_completed`` is set once and never cleared.
* ``is_claimed`` is flipped by a conditional UPDATE; the caller that loses
  a race sees ``rowcount == 0`` and gets :class:`AlreadyClaimed`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Engine, delete, select, update

from lorehub.constants import NotificationType
from lorehub.database.engine import get_session
from lorehub.database.models import Quest
from lorehub.engine.quests import (
    DEFAULT_QUEST_CATALOG,
    QuestCatalog,
    is_expired,
    utcnow,
    validate_delta,
)
from lorehub.errors import AlreadyClaimed, Expired, NotCompleted, QuestNotFound
from lorehub.services.ledger import credit_coins, lock_user, require_id
from lorehub.services.notification_service import Notifier, make_notifier, notify_safely

logger = logging.getLogger(__name__)

# Rows removed per sweep transaction
SWEEP_BATCH_SIZE = 1_000


@dataclass(frozen=True, slots=True)
class ClaimResult:
    quest_id: str
    coins_awarded: int
    new_balance: int


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------
def generate_daily_quests(
    engine: Engine,
    user_id: str,
    *,
    catalog: QuestCatalog = DEFAULT_QUEST_CATALOG,
    now: datetime | None = None,
) -> list[Quest]:
    """Ensure the user holds one unexpired quest per catalog type.

    Upsert keyed on (user, type, active window): an unexpired quest of a
    type is kept as-is (even if already claimed), a missing one is
    created fresh.  The user row is locked for the whole transaction so
    two concurrent calls cannot both insert.

    Returns the active quests in catalog order.
    """
    require_id(user_id, "user_id")
    now = now or utcnow()

    with get_session(engine) as session:
        lock_user(session, user_id)

        active = session.scalars(
            select(Quest)
            .where(Quest.user_id == user_id, Quest.expires_at > now)
            .order_by(Quest.created_at.desc())
        ).all()
        current: dict[str, Quest] = {}
        for quest in active:
            current.setdefault(quest.type, quest)

        quests: list[Quest] = []
        created = 0
        for tmpl in catalog.templates:
            quest = current.get(tmpl.type)
            if quest is None:
                quest = Quest(
                    user_id=user_id,
                    type=tmpl.type,
                    title=tmpl.title,
                    description=tmpl.description,
                    target_amount=tmpl.target_amount,
                    current_amount=0,
                    reward=tmpl.reward,
                    is_completed=False,
                    is_claimed=False,
                    expires_at=catalog.expires_at(now),
                    created_at=now,
                )
                session.add(quest)
                created += 1
            quests.append(quest)
        session.flush()

    if created:
        logger.info("Generated %d daily quests for user %s", created, user_id)
    return quests


def get_user_quests(engine: Engine, user_id: str) -> list[Quest]:
    """All quests the sweep hasn't removed yet, newest first."""
    require_id(user_id, "user_id")
    with get_session(engine) as session:
        return list(session.scalars(
            select(Quest)
            .where(Quest.user_id == user_id)
            .order_by(Quest.created_at.desc())
        ).all())


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------
def update_quest_progress(
    engine: Engine,
    user_id: str,
    quest_type: str,
    delta: int = 1,
    *,
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> Quest | None:
    """Advance the user's current quest of *quest_type* by *delta*.

    Called unconditionally by action handlers, so "nothing to advance"
    (unknown type, no active quest, already claimed, expired) is a
    silent no-op returning ``None``.

    When this call is the one that moves the quest into the completed
    state, a ``quest_completed`` notification is emitted after commit.
    """
    validate_delta(delta)
    require_id(user_id, "user_id")
    now = now or utcnow()

    with get_session(engine) as session:
        quest_id = session.scalar(
            select(Quest.id)
            .where(
                Quest.user_id == user_id,
                Quest.type == quest_type,
                Quest.is_claimed.is_(False),
                Quest.expires_at > now,
            )
            .order_by(Quest.created_at.desc())
            .limit(1)
        )
        if quest_id is None:
            logger.debug("No active %s quest for user %s", quest_type, user_id)
            return None

        bumped = session.execute(
            update(Quest)
            .where(Quest.id == quest_id, Quest.is_claimed.is_(False))
            .values(current_amount=Quest.current_amount + delta)
            .execution_options(synchronize_session=False)
        )
        if bumped.rowcount == 0:
            # Claimed or swept between the lookup and the update
            return None

        # Only one concurrent caller can see this flip
        completed = session.execute(
            update(Quest)
            .where(
                Quest.id == quest_id,
                Quest.is_completed.is_(False),
                Quest.current_amount >= Quest.target_amount,
            )
            .values(is_completed=True)
            .execution_options(synchronize_session=False)
        )
        just_completed = completed.rowcount == 1

        quest = session.get(Quest, quest_id, populate_existing=True)

    logger.debug(
        "Quest %s progress %d/%d for user %s",
        quest.type, quest.current_amount, quest.target_amount, user_id,
    )
    if just_completed:
        logger.info("Quest %s completed by user %s", quest.type, user_id)
        notify_safely(
            notifier or make_notifier(engine),
            user_id,
            NotificationType.QUEST_COMPLETED,
            {
                "related_id": quest.id,
                "quest_type": quest.type,
                "title": quest.title,
                "reward": quest.reward,
            },
        )
    return quest


# ---------------------------------------------------------------------------
# Claim
# ---------------------------------------------------------------------------
def claim_quest_reward(
    engine: Engine,
    user_id: str,
    quest_id: str,
    *,
    now: datetime | None = None,
) -> ClaimResult:
    """Pay out a completed quest exactly once.

    Raises, in this order of checks: :class:`QuestNotFound`,
    :class:`AlreadyClaimed`, :class:`Expired`, :class:`NotCompleted`.
    """
    require_id(user_id, "user_id")
    require_id(quest_id, "quest_id")
    now = now or utcnow()

    with get_session(engine) as session:
        quest = session.scalar(
            select(Quest).where(Quest.id == quest_id, Quest.user_id == user_id)
        )
        if quest is None:
            raise QuestNotFound(quest_id)
        if quest.is_claimed:
            raise AlreadyClaimed(quest_id)
        if is_expired(quest.expires_at, now):
            raise Expired(quest_id)
        if not quest.is_completed:
            raise NotCompleted(quest_id, quest.current_amount, quest.target_amount)

        flipped = session.execute(
            update(Quest)
            .where(
                Quest.id == quest_id,
                Quest.is_claimed.is_(False),
                Quest.expires_at > now,
            )
            .values(is_claimed=True)
            .execution_options(synchronize_session="fetch")
        )
        if flipped.rowcount == 0:
            # Claimed, expired or swept since the read above
            current = session.scalar(
                select(Quest)
                .where(Quest.id == quest_id)
                .execution_options(populate_existing=True)
            )
            if current is None:
                raise QuestNotFound(quest_id)
            if current.is_claimed:
                raise AlreadyClaimed(quest_id)
            raise Expired(quest_id)

        balance = credit_coins(session, user_id, quest.reward)
        reward = quest.reward

    logger.info(
        "User %s claimed quest %s (+%d coins, balance=%d)",
        user_id, quest_id, reward, balance,
    )
    return ClaimResult(quest_id=quest_id, coins_awarded=reward, new_balance=balance)


# ---------------------------------------------------------------------------
# Expiry sweep
# ---------------------------------------------------------------------------
def reset_daily_quests(
    engine: Engine,
    *,
    now: datetime | None = None,
    batch_size: int = SWEEP_BATCH_SIZE,
) -> int:
    """Delete every quest whose ``expires_at`` has passed, claimed or not.

    Deletion runs in bounded batches, one transaction each.  Returns the
    total number of rows removed.
    """
    now = now or utcnow()
    deleted = 0

    while True:
        with get_session(engine) as session:
            ids = session.scalars(
                select(Quest.id).where(Quest.expires_at <= now).limit(batch_size)
            ).all()
            if not ids:
                break
            result = session.execute(delete(Quest).where(Quest.id.in_(ids)))
            deleted += result.rowcount

    logger.info("Quest sweep removed %d expired quests (cutoff=%s)", deleted, now.isoformat())
    return deleted
