"""Create users, posts, activities and notifications.

Revision ID: 3f9c2a71d4e0
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "3f9c2a71d4e0"
down_revision = None
branch_labels = None
depends_on = None

ACTIVITY_TYPES = (
    "CREATE_POST", "FOLLOW_USER", "UNFOLLOW_USER", "LIKE_POST",
    "REMOVE_LIKE_POST", "COMMENT_POST", "REMOVE_COMMENT_POST",
)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.String(256), nullable=False),
        sa.Column("image", sa.String(2000), nullable=True),
        sa.Column("bio", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=False),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "posts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("post_ref", sa.String(36), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("image", sa.JSON),
        sa.Column("tags", sa.JSON),
        sa.Column("people", sa.JSON),
        sa.Column("location", sa.String(200), nullable=False, server_default=""),
        sa.Column("like_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=False),
    )
    op.create_index("ix_posts_user_id", "posts", ["user_id"])
    op.create_index("ix_posts_user_updated", "posts", ["user_id", "updated_at"])

    op.create_table(
        "activities",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("activity_ref", sa.String(36), nullable=False),
        sa.Column("type", sa.Enum(*ACTIVITY_TYPES, name="activitytype"), nullable=False),
        sa.Column("actor_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("target_owner_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("post_id", sa.String(36), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=True),
        sa.Column("post_ref", sa.String(36), nullable=True),
        sa.Column("message", sa.Text, nullable=True),
        sa.Column("reverses_id", sa.String(36), sa.ForeignKey("activities.id"), nullable=True),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("likes_count", sa.Integer, nullable=True),
        sa.Column("creator_image", sa.String(2000), nullable=True),
        sa.Column("user_image", sa.String(2000), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=False),
    )
    op.create_index("ix_activities_activity_ref", "activities", ["activity_ref"])
    op.create_index("ix_activities_created_at", "activities", ["created_at"])
    op.create_index("ix_activity_actor_time", "activities", ["actor_id", "created_at"])
    op.create_index("ix_activity_target_time", "activities", ["target_owner_id", "created_at"])
    op.create_index("ix_activity_pair_state", "activities", ["actor_id", "target_owner_id", "type", "active"])
    op.create_index("ix_activity_post_state", "activities", ["post_id", "type", "active"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("activity_id", sa.String(36), sa.ForeignKey("activities.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )
    op.create_index("ix_notifications_user_order", "notifications", ["user_id", "id"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("activities")
    op.drop_table("posts")
    op.drop_table("users")
    sa.Enum(name="activitytype").drop(op.get_bind(), checkfirst=True)
