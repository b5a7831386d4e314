"""
lorehub.services.notification_service — Notification Emission
==============================================================

The reward core only announces that something happened; delivery (push,
e-mail, websocket) is somebody else's job.  Announcements go through a
:data:`Notifier` callable ``(user_id, type, payload)``.  The default
notifier persists a :class:`~lorehub.database.models.Notification` row
that the SPA polls.

Notifiers are always called *after* the triggering transaction commits,
through :func:`notify_safely`, so a failing notifier can never roll back
a payout.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from sqlalchemy import Engine, func, select, update
from sqlalchemy.orm import Session

from lorehub.constants import NotificationType
from lorehub.database.engine import get_session
from lorehub.database.models import Notification
from lorehub.errors import NotFoundError
from lorehub.services.ledger import get_user, require_id

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str, dict[str, Any]], None]


def _render(ntype: str, payload: dict[str, Any]) -> tuple[str, str]:
    """Title and message for a notification type."""
    if ntype == NotificationType.ACHIEVEMENT_UNLOCKED:
        return (
            "Achievement Unlocked!",
            f"You unlocked \"{payload.get('title', 'an achievement')}\" "
            f"and earned {payload.get('coin_reward', 0)} coins.",
        )
    if ntype == NotificationType.QUEST_COMPLETED:
        return (
            "Quest Completed!",
            f"You completed \"{payload.get('title', 'a quest')}\". "
            f"Claim your {payload.get('reward', 0)} coins.",
        )
    return ntype.replace("_", " ").capitalize(), payload.get("message", "")


def create_notification(
    session: Session, user_id: str, ntype: str, payload: dict[str, Any]
) -> Notification:
    """Insert a notification row in the caller's session."""
    title, message = _render(ntype, payload)
    row = Notification(
        user_id=user_id,
        type=str(ntype),
        title=title,
        message=message,
        related_id=payload.get("related_id"),
        payload=payload,
    )
    session.add(row)
    session.flush()
    return row


def make_notifier(engine: Engine) -> Notifier:
    """Default notifier: one short transaction per notification."""

    def _notify(user_id: str, ntype: str, payload: dict[str, Any]) -> None:
        with get_session(engine) as session:
            create_notification(session, user_id, ntype, payload)

    return _notify


def notify_safely(
    notifier: Notifier, user_id: str, ntype: str, payload: dict[str, Any]
) -> bool:
    """Call *notifier*; log and swallow its failure.  Returns success."""
    try:
        notifier(user_id, ntype, payload)
    except Exception:
        logger.exception("Notifier failed for %s (user=%s)", ntype, user_id)
        return False
    return True


def get_notifications(
    engine: Engine, user_id: str, *, unread_only: bool = False, limit: int = 50
) -> list[Notification]:
    """Newest-first notifications for a user."""
    require_id(user_id, "user_id")
    with get_session(engine) as session:
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc()).limit(limit)
        return list(session.scalars(stmt).all())


def get_unread_count(engine: Engine, user_id: str) -> int:
    require_id(user_id, "user_id")
    with get_session(engine) as session:
        get_user(session, user_id)
        return session.scalar(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        )


def mark_as_read(engine: Engine, user_id: str, notification_id: str) -> None:
    """Mark one of the member's notifications read.

    Another member's notification is reported as not found.
    """
    require_id(user_id, "user_id")
    require_id(notification_id, "notification_id")
    with get_session(engine) as session:
        result = session.execute(
            update(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError(
                "Notification not found", {"notification_id": notification_id},
            )


def mark_all_as_read(engine: Engine, user_id: str) -> int:
    """Mark every unread notification read; returns how many changed."""
    require_id(user_id, "user_id")
    with get_session(engine) as session:
        get_user(session, user_id)
        result = session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
