"""Initial reward core schema

Revision ID: 4c1e7a9b2d30
Revises:
Create Date: 2026-10-19 09:12:41.118204

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

_JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")

# revision identifiers, used by Alembic.
revision: str = '4c1e7a9b2d30'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now(),
    )


def upgrade() -> None:
    """Users, social rows, notifications, quests, achievements, shop."""

    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("nickname", sa.String(50), nullable=True, unique=True),
        sa.Column("profile_picture", sa.String(500), nullable=True),
        sa.Column("bio", sa.Text, nullable=True),
        sa.Column("education_level", sa.String(20), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="member"),
        sa.Column("coins", sa.Integer, nullable=False, server_default="0"),
        sa.Column("selected_theme", sa.String(36), nullable=True),
        sa.Column("selected_badge", sa.String(36), nullable=True),
        sa.Column("selected_frame", sa.String(36), nullable=True),
        _created_at(),
        _created_at("updated_at"),
        sa.CheckConstraint("coins >= 0", name="ck_users_coins_non_negative"),
        sa.CheckConstraint(
            "role IN ('member', 'moderator', 'admin')", name="ck_users_role"
        ),
    )

    # --- posts / comments ---
    op.create_table(
        "posts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "author_id", sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("like_count", sa.Integer, server_default="0"),
        sa.Column("comment_count", sa.Integer, server_default="0"),
        sa.Column("view_count", sa.Integer, server_default="0"),
        _created_at(),
    )
    op.create_index("ix_posts_author_id", "posts", ["author_id"])
    op.create_index("ix_posts_status", "posts", ["status"])

    op.create_table(
        "comments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "post_id", sa.String(36),
            sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "author_id", sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("content", sa.Text, nullable=False),
        _created_at(),
    )
    op.create_index("ix_comments_post_id", "comments", ["post_id"])
    op.create_index("ix_comments_author_id", "comments", ["author_id"])

    # --- likes / bookmarks / follows / reads ---
    for table in ("likes", "bookmarks"):
        op.create_table(
            table,
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column(
                "user_id", sa.String(36),
                sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
            ),
            sa.Column(
                "post_id", sa.String(36),
                sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False,
            ),
            _created_at(),
            sa.UniqueConstraint("user_id", "post_id", name=f"uq_{table}_user_post"),
        )

    op.create_table(
        "follows",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "follower_id", sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "following_id", sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        _created_at(),
        sa.UniqueConstraint("follower_id", "following_id", name="uq_follows_pair"),
    )
    op.create_index("ix_follows_following_id", "follows", ["following_id"])

    op.create_table(
        "post_reads",
        sa.Column(
            "user_id", sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "post_id", sa.String(36),
            sa.ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True,
        ),
        _created_at("read_at"),
    )

    # --- notifications ---
    op.create_table(
        "notifications",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id", sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("type", sa.String(40), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("related_id", sa.String(36), nullable=True),
        sa.Column("payload", _JSON, nullable=True),
        sa.Column("is_read", sa.Boolean, server_default=sa.false()),
        _created_at(),
    )
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "is_read"])

    # --- quests ---
    op.create_table(
        "quests",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id", sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("type", sa.String(40), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("target_amount", sa.Integer, nullable=False),
        sa.Column("current_amount", sa.Integer, nullable=False, server_default="0"),
        sa.Column("reward", sa.Integer, nullable=False),
        sa.Column("is_completed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_claimed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
        sa.CheckConstraint("target_amount > 0", name="ck_quests_target_positive"),
        sa.CheckConstraint("current_amount >= 0", name="ck_quests_current_non_negative"),
    )
    op.create_index("ix_quests_user_expires", "quests", ["user_id", "expires_at"])
    op.create_index("ix_quests_user_type", "quests", ["user_id", "type"])

    # --- achievements ---
    op.create_table(
        "achievements",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("badge_image_url", sa.String(500), nullable=False),
        sa.Column("coin_reward", sa.Integer, nullable=False, server_default="0"),
        sa.Column("criteria", _JSON, nullable=False),
    )

    op.create_table(
        "user_achievements",
        sa.Column(
            "user_id", sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "achievement_id", sa.String(36),
            sa.ForeignKey("achievements.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("current_progress", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_unlocked", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_user_achievements_user_id", "user_achievements", ["user_id"])

    # --- shop ---
    op.create_table(
        "shop_items",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("price", sa.Integer, nullable=False),
        sa.Column("image_url", sa.String(500), nullable=False),
        sa.CheckConstraint("price >= 0", name="ck_shop_items_price_non_negative"),
        sa.CheckConstraint(
            "type IN ('theme', 'badge', 'frame')", name="ck_shop_items_type"
        ),
    )

    op.create_table(
        "inventory_items",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id", sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "item_id", sa.String(36), sa.ForeignKey("shop_items.id"), nullable=False,
        ),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.false()),
        _created_at("purchased_at"),
        sa.UniqueConstraint("user_id", "item_id", name="uq_inventory_user_item"),
    )
    op.create_index(
        "ix_inventory_user_active", "inventory_items", ["user_id", "is_active"]
    )


def downgrade() -> None:
    """Drop every reward core table, children first."""
    for table in (
        "inventory_items",
        "shop_items",
        "user_achievements",
        "achievements",
        "quests",
        "notifications",
        "post_reads",
        "follows",
        "bookmarks",
        "likes",
        "comments",
        "posts",
        "users",
    ):
        op.drop_table(table)
