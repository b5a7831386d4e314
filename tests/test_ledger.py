"""
tests/test_ledger.py — Coin Ledger & Notification Helper Tests
===============================================================
"""

from __future__ import annotations

import uuid
from unittest.mock import MagicMock

import pytest

from conftest import make_user
from lorehub.errors import InsufficientCoins, NotFoundError, UserNotFound, ValidationError
from lorehub.services.ledger import credit_coins, debit_coins, lock_user, require_id
from lorehub.services.notification_service import (
    create_notification,
    get_notifications,
    get_unread_count,
    make_notifier,
    mark_all_as_read,
    mark_as_read,
    notify_safely,
)


class TestRequireId:
    def test_accepts_uuid(self):
        value = str(uuid.uuid4())
        assert require_id(value) == value

    @pytest.mark.parametrize("value", [None, "", 42, "quest-1"])
    def test_rejects_everything_else(self, value):
        with pytest.raises(ValidationError):
            require_id(value, "quest_id")


class TestCoins:
    def test_credit_returns_balance(self, db_session):
        uid = make_user(db_session.get_bind(), coins=5)
        assert credit_coins(db_session, uid, 20) == 25

    def test_debit_returns_balance(self, db_session):
        uid = make_user(db_session.get_bind(), coins=50)
        assert debit_coins(db_session, uid, 50) == 0

    def test_debit_never_goes_negative(self, db_session):
        uid = make_user(db_session.get_bind(), coins=30)
        with pytest.raises(InsufficientCoins) as exc_info:
            debit_coins(db_session, uid, 50)
        assert exc_info.value.details == {"balance": 30, "price": 50}
        assert lock_user(db_session, uid).coins == 30

    def test_negative_amounts_rejected(self, db_session):
        uid = make_user(db_session.get_bind())
        with pytest.raises(ValidationError):
            credit_coins(db_session, uid, -1)
        with pytest.raises(ValidationError):
            debit_coins(db_session, uid, -1)

    def test_unknown_user(self, db_session):
        with pytest.raises(UserNotFound):
            credit_coins(db_session, str(uuid.uuid4()), 1)


class TestNotifications:
    def test_rendered_titles(self, db_session, user_id):
        row = create_notification(db_session, user_id, "achievement_unlocked", {
            "title": "First Post", "coin_reward": 10,
        })
        assert row.title == "Achievement Unlocked!"
        assert row.message == 'You unlocked "First Post" and earned 10 coins.'

    def test_default_notifier_and_listing(self, db_engine, user_id):
        notify = make_notifier(db_engine)
        notify(user_id, "quest_completed", {"title": "Daily writer", "reward": 50})
        notify(user_id, "post_liked", {"message": "Someone liked your post."})

        rows = get_notifications(db_engine, user_id)
        assert {r.type for r in rows} == {"quest_completed", "post_liked"}
        assert len(get_notifications(db_engine, user_id, unread_only=True)) == 2

    def test_notify_safely_swallows_failure(self):
        notifier = MagicMock(side_effect=RuntimeError("down"))
        assert notify_safely(notifier, "u", "quest_completed", {}) is False

    def test_notify_safely_success(self):
        notifier = MagicMock()
        assert notify_safely(notifier, "u", "quest_completed", {"x": 1}) is True
        notifier.assert_called_once_with("u", "quest_completed", {"x": 1})


class TestReadState:
    def _seed(self, engine, uid: str, n: int = 3) -> None:
        notify = make_notifier(engine)
        for i in range(n):
            notify(uid, "post_liked", {"message": f"like {i}"})

    def test_unread_count_and_mark_all(self, db_engine, user_id):
        self._seed(db_engine, user_id)
        assert get_unread_count(db_engine, user_id) == 3
        assert mark_all_as_read(db_engine, user_id) == 3
        assert get_unread_count(db_engine, user_id) == 0
        assert mark_all_as_read(db_engine, user_id) == 0

    def test_mark_one(self, db_engine, user_id):
        self._seed(db_engine, user_id, n=2)
        target = get_notifications(db_engine, user_id)[0]
        mark_as_read(db_engine, user_id, target.id)
        unread = get_notifications(db_engine, user_id, unread_only=True)
        assert len(unread) == 1
        assert unread[0].id != target.id
        assert get_unread_count(db_engine, user_id) == 1

    def test_cannot_mark_someone_elses(self, db_engine, user_id):
        self._seed(db_engine, user_id, n=1)
        target = get_notifications(db_engine, user_id)[0]
        with pytest.raises(NotFoundError):
            mark_as_read(db_engine, make_user(db_engine), target.id)
        assert get_unread_count(db_engine, user_id) == 1

    def test_unknown_user(self, db_engine):
        with pytest.raises(UserNotFound):
            get_unread_count(db_engine, str(uuid.uuid4()))

    def test_listing_rejects_malformed_id(self, db_engine):
        with pytest.raises(ValidationError):
            get_notifications(db_engine, "not-a-uuid")
