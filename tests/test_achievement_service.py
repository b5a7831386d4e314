"""
tests/test_achievement_service.py — Achievement Service Integration Tests
==========================================================================
Counter queries, progress persistence, exactly-once unlocks and payouts,
and the manual unlock path.  Runs against the seeded default catalog:

    First Post (1 post, 10)      Commentator (25 comments, 25)
    Avid Reader (50 reads, 30)   Prolific Writer (10 posts, 50)
    Popular (100 followers, 100)
"""

from __future__ import annotations

import uuid
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from conftest import get_user_row, interleave, make_post, make_user
from lorehub.database.models import (
    Achievement,
    Bookmark,
    Comment,
    Follow,
    Like,
    Notification,
    Post,
    PostRead,
    UserAchievement,
)
from lorehub.engine.quests import utcnow
from lorehub.errors import AchievementNotFound, AlreadyUnlocked, UserNotFound
from lorehub.services import achievement_service, action_service
from lorehub.services.ledger import credit_coins


@pytest.fixture
def engine(seeded_engine):
    return seeded_engine


def _achievement_id(engine, title: str) -> str:
    with Session(engine) as session:
        return session.scalar(select(Achievement.id).where(Achievement.title == title))


def _add_rows(engine, *rows) -> None:
    with Session(engine) as session:
        session.add_all(rows)
        session.commit()


# ===========================================================================
# Counters
# ===========================================================================
class TestCounters:
    def test_posts_created_ignores_deleted(self, engine, user_id):
        make_post(engine, user_id)
        make_post(engine, user_id)
        make_post(engine, user_id, status="deleted")
        with Session(engine) as session:
            assert achievement_service.count_posts_created(session, user_id) == 2

    def test_posts_read_counts_distinct_posts(self, engine, user_id):
        author = make_user(engine)
        p1, p2, p3 = (make_post(engine, author) for _ in range(3))
        _add_rows(
            engine,
            Like(user_id=user_id, post_id=p1),
            Comment(post_id=p1, author_id=user_id, content="nice"),
            Bookmark(user_id=user_id, post_id=p2),
            PostRead(user_id=user_id, post_id=p3),
            PostRead(user_id=user_id, post_id=p1),
        )
        with Session(engine) as session:
            assert achievement_service.count_posts_read(session, user_id) == 3

    def test_followers_gained_counts_incoming_only(self, engine, user_id):
        a, b = make_user(engine), make_user(engine)
        _add_rows(
            engine,
            Follow(follower_id=a, following_id=user_id),
            Follow(follower_id=b, following_id=user_id),
            Follow(follower_id=user_id, following_id=a),
        )
        with Session(engine) as session:
            assert achievement_service.count_followers_gained(session, user_id) == 2

    def test_every_criteria_type_has_a_counter(self, engine, user_id):
        with Session(engine) as session:
            counters = achievement_service.compute_counters(session, user_id)
        assert set(counters) == {
            "posts_created", "posts_read", "comments_made", "likes_given", "followers_gained",
        }
        assert all(v == 0 for v in counters.values())


# ===========================================================================
# get_all_achievements / get_user_achievements
# ===========================================================================
class TestAchievementViews:
    def test_catalog_ordered_by_reward(self, engine):
        titles = [a.title for a in achievement_service.get_all_achievements(engine)]
        assert titles == [
            "First Post", "Commentator", "Avid Reader", "Prolific Writer", "Popular",
        ]

    def test_criteria_are_parsed(self, engine):
        first = achievement_service.get_all_achievements(engine)[0]
        assert first.parsed_criteria.type == "posts_created"
        assert first.parsed_criteria.target_value == 1

    def test_user_without_records_sees_everything_locked(self, engine, user_id):
        views = achievement_service.get_user_achievements(engine, user_id)
        assert len(views) == 5
        assert all(not v.is_unlocked and v.current_progress == 0 for v in views)
        assert all(v.unlocked_at is None for v in views)

    def test_progress_is_live(self, engine, user_id):
        for _ in range(3):
            make_post(engine, user_id)
        views = {v.achievement.title: v for v in
                 achievement_service.get_user_achievements(engine, user_id)}
        assert views["Prolific Writer"].current_progress == 3
        assert views["Prolific Writer"].target_value == 10

    def test_unknown_user(self, engine):
        with pytest.raises(UserNotFound):
            achievement_service.get_user_achievements(engine, str(uuid.uuid4()))


# ===========================================================================
# check_and_unlock_achievements
# ===========================================================================
class TestCheckAndUnlock:
    def test_first_post_unlocks_and_pays(self, engine, user_id):
        make_post(engine, user_id)
        unlocked = achievement_service.check_and_unlock_achievements(
            engine, user_id, notifier=MagicMock(),
        )
        assert [a.title for a in unlocked] == ["First Post"]
        assert get_user_row(engine, user_id).coins == 10

    def test_second_run_unlocks_nothing(self, engine, user_id):
        make_post(engine, user_id)
        achievement_service.check_and_unlock_achievements(engine, user_id, notifier=MagicMock())
        again = achievement_service.check_and_unlock_achievements(
            engine, user_id, notifier=MagicMock(),
        )
        assert again == []
        assert get_user_row(engine, user_id).coins == 10

    def test_progress_is_persisted_for_locked(self, engine, user_id):
        for _ in range(4):
            make_post(engine, user_id)
        achievement_service.check_and_unlock_achievements(engine, user_id, notifier=MagicMock())

        writer = _achievement_id(engine, "Prolific Writer")
        with Session(engine) as session:
            record = session.get(UserAchievement, (user_id, writer))
        assert record.current_progress == 4
        assert record.is_unlocked is False

    def test_unlocked_stays_unlocked_after_counter_drops(self, engine, user_id):
        post_id = make_post(engine, user_id)
        achievement_service.check_and_unlock_achievements(engine, user_id, notifier=MagicMock())
        with Session(engine) as session:
            session.get(Post, post_id).status = "deleted"
            session.commit()

        assert achievement_service.check_and_unlock_achievements(
            engine, user_id, notifier=MagicMock(),
        ) == []
        views = {v.achievement.title: v for v in
                 achievement_service.get_user_achievements(engine, user_id)}
        assert views["First Post"].is_unlocked is True

    def test_multiple_unlocks_in_one_check(self, engine, user_id):
        for _ in range(10):
            make_post(engine, user_id)
        unlocked = achievement_service.check_and_unlock_achievements(
            engine, user_id, notifier=MagicMock(),
        )
        assert {a.title for a in unlocked} == {"First Post", "Prolific Writer"}
        assert get_user_row(engine, user_id).coins == 60

    def test_one_notification_per_unlock(self, engine, user_id):
        for _ in range(10):
            make_post(engine, user_id)
        notifier = MagicMock()
        achievement_service.check_and_unlock_achievements(engine, user_id, notifier=notifier)

        assert notifier.call_count == 2
        titles = {c.args[2]["title"] for c in notifier.call_args_list}
        assert titles == {"First Post", "Prolific Writer"}
        assert all(c.args[1] == "achievement_unlocked" for c in notifier.call_args_list)

    def test_default_notifier_writes_rows(self, engine, user_id):
        make_post(engine, user_id)
        achievement_service.check_and_unlock_achievements(engine, user_id)
        with Session(engine) as session:
            row = session.scalar(select(Notification).where(Notification.user_id == user_id))
        assert row.type == "achievement_unlocked"
        assert "First Post" in row.message

    def test_nothing_earned(self, engine, user_id):
        assert achievement_service.check_and_unlock_achievements(
            engine, user_id, notifier=MagicMock(),
        ) == []
        assert get_user_row(engine, user_id).coins == 0

    def test_unmeasured_criteria_is_listed_but_never_unlocked(self, engine, user_id):
        _add_rows(engine, Achievement(
            title="Night Owl",
            description="Post after midnight",
            badge_image_url="/badges/night-owl.png",
            coin_reward=5,
            criteria={"type": "posts_at_night", "target_value": 0},
        ))
        unlocked = achievement_service.check_and_unlock_achievements(
            engine, user_id, notifier=MagicMock(),
        )
        assert unlocked == []
        titles = [v.achievement.title for v in
                  achievement_service.get_user_achievements(engine, user_id)]
        assert "Night Owl" in titles


# ===========================================================================
# unlock_achievement
# ===========================================================================
class TestUnlockAchievement:
    def test_credits_reward_exactly_once(self, engine):
        uid = make_user(engine, coins=7)
        popular = _achievement_id(engine, "Popular")

        result = achievement_service.unlock_achievement(
            engine, uid, popular, notifier=MagicMock(),
        )
        assert result.coins_awarded == 100
        assert result.new_balance == 107
        assert result.badge_image_url == "/badges/popular.png"

        with pytest.raises(AlreadyUnlocked):
            achievement_service.unlock_achievement(engine, uid, popular, notifier=MagicMock())
        assert get_user_row(engine, uid).coins == 107

    def test_unknown_achievement(self, engine, user_id):
        with pytest.raises(AchievementNotFound):
            achievement_service.unlock_achievement(engine, user_id, str(uuid.uuid4()))

    def test_check_does_not_repay_manual_unlock(self, engine, user_id):
        first = _achievement_id(engine, "First Post")
        achievement_service.unlock_achievement(engine, user_id, first, notifier=MagicMock())
        make_post(engine, user_id)

        assert achievement_service.check_and_unlock_achievements(
            engine, user_id, notifier=MagicMock(),
        ) == []
        assert get_user_row(engine, user_id).coins == 10


# ===========================================================================
# Concurrent unlocks
# ===========================================================================
def _concurrent_unlock(user_id: str, achievement_id: str, reward: int):
    """Another request unlocks and pays between our read and our flip."""

    def _write(session: Session) -> None:
        session.execute(
            update(UserAchievement)
            .where(
                UserAchievement.user_id == user_id,
                UserAchievement.achievement_id == achievement_id,
            )
            .values(is_unlocked=True, unlocked_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        credit_coins(session, user_id, reward)

    return _write


class TestConcurrentUnlocks:
    def test_check_skips_achievement_unlocked_by_other_caller(self, engine, user_id):
        make_post(engine, user_id)
        first = _achievement_id(engine, "First Post")
        notifier = MagicMock()

        with interleave(UserAchievement, _concurrent_unlock(user_id, first, 10)) as fired:
            unlocked = achievement_service.check_and_unlock_achievements(
                engine, user_id, notifier=notifier,
            )
        assert fired
        assert unlocked == []
        notifier.assert_not_called()
        # Only the winner's payout landed
        assert get_user_row(engine, user_id).coins == 10

    def test_manual_unlock_loses_to_concurrent_unlock(self, engine, user_id):
        popular = _achievement_id(engine, "Popular")

        with patch.object(achievement_service, "credit_coins", wraps=credit_coins) as paid, \
                interleave(UserAchievement, _concurrent_unlock(user_id, popular, 100)):
            with pytest.raises(AlreadyUnlocked):
                achievement_service.unlock_achievement(
                    engine, user_id, popular, notifier=MagicMock(),
                )
        paid.assert_not_called()


# ===========================================================================
# Post deletion
# ===========================================================================
class TestDeletedPostsStayUnlocked:
    def test_delete_post_drops_counter_but_keeps_unlock(self, engine, user_id):
        post = action_service.create_post(engine, user_id, "Hello", "World")
        achievement_service.check_and_unlock_achievements(engine, user_id, notifier=MagicMock())

        action_service.delete_post(engine, user_id, post.id)

        with Session(engine) as session:
            assert achievement_service.count_posts_created(session, user_id) == 0
        views = {v.achievement.title: v for v in
                 achievement_service.get_user_achievements(engine, user_id)}
        assert views["First Post"].is_unlocked is True
        assert views["First Post"].current_progress == 0
        assert get_user_row(engine, user_id).coins == 10
