"""
lorehub.database.seed — Default Catalog Seeder
===============================================

Baseline achievement and shop catalogs inserted on first startup so a
fresh deployment has something to earn and something to buy.

Idempotent — rows are matched by title / name and only missing ones are
inserted.  Definitions are never rewritten once seeded.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from lorehub.constants import SlotType
from lorehub.database.models import Achievement, ShopItem
from lorehub.engine.achievements import CriteriaType

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Default catalogs
# ---------------------------------------------------------------------------
DEFAULT_ACHIEVEMENTS: list[dict] = [
    {
        "title": "First Post",
        "description": "Create your first post",
        "badge_image_url": "/badges/first-post.png",
        "coin_reward": 10,
        "criteria": {"type": CriteriaType.POSTS_CREATED.value, "target_value": 1},
    },
    {
        "title": "Prolific Writer",
        "description": "Create 10 posts",
        "badge_image_url": "/badges/prolific-writer.png",
        "coin_reward": 50,
        "criteria": {"type": CriteriaType.POSTS_CREATED.value, "target_value": 10},
    },
    {
        "title": "Avid Reader",
        "description": "Read 50 posts",
        "badge_image_url": "/badges/avid-reader.png",
        "coin_reward": 30,
        "criteria": {"type": CriteriaType.POSTS_READ.value, "target_value": 50},
    },
    {
        "title": "Commentator",
        "description": "Leave 25 comments",
        "badge_image_url": "/badges/commentator.png",
        "coin_reward": 25,
        "criteria": {"type": CriteriaType.COMMENTS_MADE.value, "target_value": 25},
    },
    {
        "title": "Popular",
        "description": "Gain 100 followers",
        "badge_image_url": "/badges/popular.png",
        "coin_reward": 100,
        "criteria": {"type": CriteriaType.FOLLOWERS_GAINED.value, "target_value": 100},
    },
]

DEFAULT_SHOP_ITEMS: list[dict] = [
    {
        "name": "Dark Theme",
        "description": "A sleek dark theme for your profile",
        "type": SlotType.THEME.value,
        "price": 50,
        "image_url": "/items/dark-theme.png",
    },
    {
        "name": "Ocean Theme",
        "description": "Calm blues inspired by the sea",
        "type": SlotType.THEME.value,
        "price": 50,
        "image_url": "/items/ocean-theme.png",
    },
    {
        "name": "Gold Frame",
        "description": "A golden frame for your avatar",
        "type": SlotType.FRAME.value,
        "price": 100,
        "image_url": "/items/gold-frame.png",
    },
    {
        "name": "Silver Frame",
        "description": "A silver frame for your avatar",
        "type": SlotType.FRAME.value,
        "price": 75,
        "image_url": "/items/silver-frame.png",
    },
    {
        "name": "Expert Badge",
        "description": "Show off your expertise",
        "type": SlotType.BADGE.value,
        "price": 150,
        "image_url": "/items/expert-badge.png",
    },
]


# ---------------------------------------------------------------------------
# Seeder
# ---------------------------------------------------------------------------
def seed_catalogs(engine: Engine) -> None:
    """Insert default achievements and shop items that don't yet exist."""
    session = Session(engine)
    achievements = items = 0
    try:
        existing_titles = set(session.scalars(select(Achievement.title)))
        for row in DEFAULT_ACHIEVEMENTS:
            if row["title"] not in existing_titles:
                session.add(Achievement(**row))
                achievements += 1

        existing_names = set(session.scalars(select(ShopItem.name)))
        for row in DEFAULT_SHOP_ITEMS:
            if row["name"] not in existing_names:
                session.add(ShopItem(**row))
                items += 1
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if achievements or items:
        logger.info(
            "Seeded %d achievements and %d shop items.", achievements, items,
        )
