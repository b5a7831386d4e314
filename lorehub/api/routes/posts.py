"""
lorehub.api.routes.posts — Social actions that feed quest & achievement progress
=================================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from lorehub.api.deps import get_current_user, get_dispatcher, get_engine
from lorehub.engine.dispatch import ActionDispatcher
from lorehub.services import action_service

router = APIRouter(tags=["posts"])


class PostCreate(BaseModel):
    title: str
    content: str


class CommentCreate(BaseModel):
    content: str


@router.post("/posts", status_code=201)
def create_post(
    body: PostCreate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
):
    post = action_service.create_post(
        engine, user["sub"], body.title, body.content, dispatcher=dispatcher,
    )
    return {"id": post.id, "title": post.title, "status": post.status}


@router.get("/posts/{post_id}")
def read_post(
    post_id: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
):
    post = action_service.read_post(engine, user["sub"], post_id, dispatcher=dispatcher)
    return {
        "id": post.id,
        "author_id": post.author_id,
        "title": post.title,
        "content": post.content,
        "like_count": post.like_count,
        "comment_count": post.comment_count,
        "view_count": post.view_count,
    }


@router.post("/posts/{post_id}/comments", status_code=201)
def comment(
    post_id: str,
    body: CommentCreate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
):
    row = action_service.add_comment(
        engine, user["sub"], post_id, body.content, dispatcher=dispatcher,
    )
    return {"id": row.id, "post_id": row.post_id}


@router.post("/posts/{post_id}/like")
def like(
    post_id: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
):
    """Toggle: a second like on the same post removes it."""
    liked = action_service.like_post(engine, user["sub"], post_id, dispatcher=dispatcher)
    return {"liked": liked}


@router.delete("/posts/{post_id}/like")
def unlike(
    post_id: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    action_service.unlike_post(engine, user["sub"], post_id)
    return {"liked": False}


@router.post("/posts/{post_id}/bookmark", status_code=201)
def bookmark(
    post_id: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
):
    action_service.bookmark_post(engine, user["sub"], post_id, dispatcher=dispatcher)
    return {"bookmarked": True}


@router.post("/users/{user_id}/follow", status_code=201)
def follow(
    user_id: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
):
    action_service.follow_user(engine, user["sub"], user_id, dispatcher=dispatcher)
    return {"following": True}


@router.delete("/posts/{post_id}")
def delete_post(
    post_id: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    action_service.delete_post(engine, user["sub"], post_id)
    return {"deleted": True}


@router.delete("/posts/{post_id}/bookmark")
def remove_bookmark(
    post_id: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    action_service.remove_bookmark(engine, user["sub"], post_id)
    return {"bookmarked": False}


@router.delete("/users/{user_id}/follow")
def unfollow(
    user_id: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    action_service.unfollow_user(engine, user["sub"], user_id)
    return {"following": False}
