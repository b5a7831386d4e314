"""
lorehub.engine.dispatch — Action → Progress Tracker Routing
============================================================

Social services publish an :class:`~lorehub.engine.events.ActionEvent`
after their own transaction commits.  Interested progress trackers
(quest progress, achievement checks) subscribe per
:class:`~lorehub.engine.events.ActionType`, so adding a quest or
achievement type never touches the post/comment/like handlers.

A subscriber that raises is logged and skipped: progress bookkeeping
must never fail the member's original action.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from lorehub.engine.achievements import ACTION_TO_CRITERIA
from lorehub.engine.events import ActionEvent, ActionType

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from lorehub.engine.quests import QuestCatalog
    from lorehub.services.notification_service import Notifier

logger = logging.getLogger(__name__)

Subscriber = Callable[[ActionEvent], object]


class ActionDispatcher:
    """Registry of subscribers keyed by action type.

    Usage::

        dispatcher = ActionDispatcher()
        dispatcher.subscribe(ActionType.POST_CREATED, on_post_created)
        dispatcher.dispatch(ActionEvent(user_id=uid, action=ActionType.POST_CREATED))
    """

    def __init__(self) -> None:
        self._subscribers: dict[ActionType, list[tuple[str, Subscriber]]] = {}

    def subscribe(
        self, action: ActionType, handler: Subscriber, *, name: str | None = None
    ) -> None:
        label = name or getattr(handler, "__name__", repr(handler))
        self._subscribers.setdefault(action, []).append((label, handler))

    def subscribers(self, action: ActionType) -> list[str]:
        """Names of the handlers registered for *action*, in call order."""
        return [label for label, _ in self._subscribers.get(action, [])]

    def dispatch(self, event: ActionEvent) -> int:
        """Call every subscriber for ``event.action``.

        Returns the number of subscribers that completed without raising.
        """
        ok = 0
        for label, handler in self._subscribers.get(event.action, []):
            try:
                handler(event)
                ok += 1
            except Exception:
                logger.exception(
                    "Subscriber %s failed for %s (user=%s)",
                    label, event.action, event.user_id,
                )
        return ok


# ---------------------------------------------------------------------------
# Default wiring
# ---------------------------------------------------------------------------
def build_default_dispatcher(
    engine: Engine,
    catalog: QuestCatalog,
    *,
    notifier: Notifier | None = None,
) -> ActionDispatcher:
    """Subscribe quest progress and achievement checks to member actions.

    * Each quest template advances on its own ``action``.
    * The achievement checker runs on every action that can move a
      lifetime counter (see ``ACTION_TO_CRITERIA``).
    """
    from lorehub.services import achievement_service, quest_service

    dispatcher = ActionDispatcher()

    for tmpl in catalog.templates:
        quest_type = tmpl.type

        def _advance(event: ActionEvent, quest_type: str = quest_type) -> object:
            return quest_service.update_quest_progress(
                engine, event.user_id, quest_type, event.amount, notifier=notifier,
            )

        dispatcher.subscribe(tmpl.action, _advance, name=f"quest:{quest_type}")

    def _check(event: ActionEvent) -> object:
        return achievement_service.check_and_unlock_achievements(
            engine, event.user_id, notifier=notifier,
        )

    for action in ACTION_TO_CRITERIA:
        dispatcher.subscribe(action, _check, name="achievements")

    return dispatcher
