"""
lorehub.services.action_service — Member Social Actions
========================================================

Posting, commenting, liking, bookmarking, following and reading.  Each
operation commits its own row first and then publishes an
:class:`~lorehub.engine.events.ActionEvent`; quest progress and
achievement checks happen in whatever the dispatcher has subscribed, and
a failure there never undoes the action itself.

Pass ``dispatcher=None`` to record the action without any progress
side effects (imports, back-fills).

The inverse operations (unlike, bookmark removal, unfollow, post
deletion) publish nothing.  Lifetime counters are recomputed from these
tables, so they simply fall; unlocked achievements never re-lock.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import Engine, delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lorehub.constants import NotificationType
from lorehub.database.engine import get_session
from lorehub.database.models import Bookmark, Comment, Follow, Like, Post, PostRead
from lorehub.engine.events import ActionEvent, ActionType
from lorehub.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from lorehub.services.ledger import get_user, require_id
from lorehub.services.notification_service import create_notification

if TYPE_CHECKING:
    from lorehub.engine.dispatch import ActionDispatcher

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200


def _get_visible_post(session: Session, post_id: str) -> Post:
    require_id(post_id, "post_id")
    post = session.get(Post, post_id)
    if post is None or post.status == "deleted":
        raise NotFoundError("Post not found", {"post_id": post_id})
    return post


def _publish(dispatcher: ActionDispatcher | None, event: ActionEvent) -> None:
    if dispatcher is not None:
        dispatcher.dispatch(event)


def _insert_unique(session: Session, row: object, message: str, details: dict) -> None:
    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(row)
            session.flush()
    except IntegrityError as exc:
        raise ConflictError(message, details) from exc


# ---------------------------------------------------------------------------
# Posts & comments
# ---------------------------------------------------------------------------
def create_post(
    engine: Engine,
    author_id: str,
    title: str,
    content: str,
    *,
    dispatcher: ActionDispatcher | None = None,
) -> Post:
    require_id(author_id, "author_id")
    if not title or not title.strip():
        raise ValidationError("Title is required")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError("Title is too long", {"length": len(title)})
    if not content or not content.strip():
        raise ValidationError("Content is required")

    with get_session(engine) as session:
        get_user(session, author_id)
        post = Post(author_id=author_id, title=title.strip(), content=content)
        session.add(post)
        session.flush()

    logger.info("User %s created post %s", author_id, post.id)
    _publish(dispatcher, ActionEvent(
        user_id=author_id, action=ActionType.POST_CREATED, target_id=post.id,
    ))
    return post


def delete_post(engine: Engine, user_id: str, post_id: str) -> None:
    """Soft-delete a post.  Only its author may do this.

    A deleted post stops counting toward ``posts_created``; achievements
    already unlocked on the strength of it stay unlocked.
    """
    require_id(user_id, "user_id")

    with get_session(engine) as session:
        post = _get_visible_post(session, post_id)
        if post.author_id != user_id:
            raise AuthorizationError(
                "You can only delete your own posts", {"post_id": post_id},
            )
        post.status = "deleted"

    logger.info("User %s deleted post %s", user_id, post_id)


def add_comment(
    engine: Engine,
    user_id: str,
    post_id: str,
    content: str,
    *,
    dispatcher: ActionDispatcher | None = None,
) -> Comment:
    require_id(user_id, "user_id")
    if not content or not content.strip():
        raise ValidationError("Comment content is required")

    with get_session(engine) as session:
        get_user(session, user_id)
        post = _get_visible_post(session, post_id)
        comment = Comment(post_id=post_id, author_id=user_id, content=content)
        session.add(comment)
        session.execute(
            update(Post)
            .where(Post.id == post_id)
            .values(comment_count=Post.comment_count + 1)
            .execution_options(synchronize_session=False)
        )
        if post.author_id != user_id:
            create_notification(session, post.author_id, NotificationType.POST_COMMENTED, {
                "related_id": post_id,
                "message": f"Someone commented on \"{post.title}\".",
                "actor_id": user_id,
            })
        session.flush()

    _publish(dispatcher, ActionEvent(
        user_id=user_id, action=ActionType.COMMENT_CREATED, target_id=post_id,
    ))
    return comment


# ---------------------------------------------------------------------------
# Likes & bookmarks
# ---------------------------------------------------------------------------
def _remove_like(session: Session, user_id: str, post_id: str) -> bool:
    removed = session.execute(
        delete(Like)
        .where(Like.user_id == user_id, Like.post_id == post_id)
        .execution_options(synchronize_session=False)
    )
    if removed.rowcount == 0:
        return False
    session.execute(
        update(Post)
        .where(Post.id == post_id, Post.like_count > 0)
        .values(like_count=Post.like_count - 1)
        .execution_options(synchronize_session=False)
    )
    return True


def like_post(
    engine: Engine,
    user_id: str,
    post_id: str,
    *,
    dispatcher: ActionDispatcher | None = None,
) -> bool:
    """Toggle the member's like on a post.

    Liking an already-liked post removes the like.  Returns ``True`` when
    the post ends up liked; only that direction publishes ``POST_LIKED``.
    """
    require_id(user_id, "user_id")

    with get_session(engine) as session:
        get_user(session, user_id)
        post = _get_visible_post(session, post_id)
        if _remove_like(session, user_id, post_id):
            logger.debug("User %s unliked post %s", user_id, post_id)
            return False
        like = Like(user_id=user_id, post_id=post_id)
        _insert_unique(session, like, "Post already liked", {"post_id": post_id})
        session.execute(
            update(Post)
            .where(Post.id == post_id)
            .values(like_count=Post.like_count + 1)
            .execution_options(synchronize_session=False)
        )
        if post.author_id != user_id:
            create_notification(session, post.author_id, NotificationType.POST_LIKED, {
                "related_id": post_id,
                "message": f"Someone liked \"{post.title}\".",
                "actor_id": user_id,
            })

    _publish(dispatcher, ActionEvent(
        user_id=user_id, action=ActionType.POST_LIKED, target_id=post_id,
    ))
    return True


def unlike_post(engine: Engine, user_id: str, post_id: str) -> bool:
    """Remove a like.  Returns ``False`` if there was none to remove."""
    require_id(user_id, "user_id")
    require_id(post_id, "post_id")
    with get_session(engine) as session:
        get_user(session, user_id)
        return _remove_like(session, user_id, post_id)


def bookmark_post(
    engine: Engine,
    user_id: str,
    post_id: str,
    *,
    dispatcher: ActionDispatcher | None = None,
) -> Bookmark:
    """Bookmark a post once.  A duplicate raises :class:`ConflictError`."""
    require_id(user_id, "user_id")

    with get_session(engine) as session:
        get_user(session, user_id)
        _get_visible_post(session, post_id)
        bookmark = Bookmark(user_id=user_id, post_id=post_id)
        _insert_unique(session, bookmark, "Post already bookmarked", {"post_id": post_id})

    _publish(dispatcher, ActionEvent(
        user_id=user_id, action=ActionType.POST_BOOKMARKED, target_id=post_id,
    ))
    return bookmark


def remove_bookmark(engine: Engine, user_id: str, post_id: str) -> None:
    """Delete a bookmark and tell the member it is gone.

    Raises :class:`NotFoundError` if the post was not bookmarked.
    """
    require_id(user_id, "user_id")
    require_id(post_id, "post_id")

    with get_session(engine) as session:
        removed = session.execute(
            delete(Bookmark)
            .where(Bookmark.user_id == user_id, Bookmark.post_id == post_id)
            .execution_options(synchronize_session=False)
        )
        if removed.rowcount == 0:
            raise NotFoundError("Bookmark not found", {"post_id": post_id})
        title = session.scalar(select(Post.title).where(Post.id == post_id))
        create_notification(session, user_id, NotificationType.BOOKMARK_REMOVED, {
            "related_id": post_id,
            "message": f"Your bookmark of \"{title or 'a post'}\" was removed.",
        })

    logger.debug("User %s removed bookmark on %s", user_id, post_id)


# ---------------------------------------------------------------------------
# Follows
# ---------------------------------------------------------------------------
def follow_user(
    engine: Engine,
    follower_id: str,
    following_id: str,
    *,
    dispatcher: ActionDispatcher | None = None,
) -> Follow:
    """Follow another member.

    The published event is addressed to the member being followed, whose
    ``followers_gained`` counter moves.
    """
    require_id(follower_id, "follower_id")
    require_id(following_id, "following_id")
    if follower_id == following_id:
        raise ValidationError("You cannot follow yourself")

    with get_session(engine) as session:
        get_user(session, follower_id)
        get_user(session, following_id)
        follow = Follow(follower_id=follower_id, following_id=following_id)
        _insert_unique(
            session, follow, "Already following this user", {"following_id": following_id},
        )

    _publish(dispatcher, ActionEvent(
        user_id=following_id,
        action=ActionType.USER_FOLLOWED,
        target_id=follower_id,
        metadata={"follower_id": follower_id},
    ))
    return follow


def unfollow_user(engine: Engine, follower_id: str, following_id: str) -> None:
    """Drop a follow edge; the followed member's follower count falls with it.

    Raises :class:`NotFoundError` if *follower_id* was not following.
    """
    require_id(follower_id, "follower_id")
    require_id(following_id, "following_id")

    with get_session(engine) as session:
        removed = session.execute(
            delete(Follow)
            .where(Follow.follower_id == follower_id, Follow.following_id == following_id)
            .execution_options(synchronize_session=False)
        )
        if removed.rowcount == 0:
            raise NotFoundError(
                "Follow relationship not found", {"following_id": following_id},
            )

    logger.info("User %s unfollowed %s", follower_id, following_id)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def read_post(
    engine: Engine,
    user_id: str,
    post_id: str,
    *,
    dispatcher: ActionDispatcher | None = None,
) -> Post:
    """Record that a member opened a post.

    Every call bumps ``view_count``; only the first read by a member is
    stored and published.
    """
    require_id(user_id, "user_id")

    with get_session(engine) as session:
        get_user(session, user_id)
        post = _get_visible_post(session, post_id)
        session.execute(
            update(Post)
            .where(Post.id == post_id)
            .values(view_count=Post.view_count + 1)
            .execution_options(synchronize_session=False)
        )
        first_read = session.get(PostRead, (user_id, post_id)) is None
        if first_read:
            session.add(PostRead(user_id=user_id, post_id=post_id))
        session.flush()
        session.refresh(post)

    if first_read:
        _publish(dispatcher, ActionEvent(
            user_id=user_id, action=ActionType.POST_READ, target_id=post_id,
        ))
    return post
