"""
lorehub.engine.events — ActionEvent and ActionType
===================================================

The event envelope published by the social services after a member
action commits.  Quest and achievement trackers subscribe to these
through :class:`~lorehub.engine.dispatch.ActionDispatcher`.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import UTC, datetime

__all__ = ["ActionEvent", "ActionType"]


class ActionType(enum.StrEnum):
    """Member actions that can move quest or achievement progress."""
    POST_CREATED = "POST_CREATED"
    COMMENT_CREATED = "COMMENT_CREATED"
    POST_LIKED = "POST_LIKED"
    POST_BOOKMARKED = "POST_BOOKMARKED"
    POST_READ = "POST_READ"
    USER_FOLLOWED = "USER_FOLLOWED"


@dataclass(frozen=True, slots=True)
class ActionEvent:
    """A committed member action.

    ``user_id`` is the member whose progress the action affects.  For
    :attr:`ActionType.USER_FOLLOWED` that is the member being followed
    (they gain a follower); the actor is kept in ``metadata``.
    """

    user_id: str
    action: ActionType
    target_id: str | None = None
    amount: int = 1
    metadata: dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
