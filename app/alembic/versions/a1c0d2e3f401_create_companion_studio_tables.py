"""Create Companion Studio tables (Snowflake BIGINT IDs)

Revision ID: a1c0d2e3f401
Revises:
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a1c0d2e3f401"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*, updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)]
    if updated:
        columns.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False))
    return columns


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=True),
        sa.Column("name", sa.String(length=100), nullable=True),
        sa.Column("image", sa.String(length=512), nullable=True),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("email_verified", sa.DateTime(timezone=True), nullable=True),
        sa.Column("nuts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("images_per_day", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("images_per_generation", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("daily_images", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("features", sa.JSON(), nullable=False),
        sa.Column("last_image_reset", sa.DateTime(timezone=True), nullable=True),
        sa.Column("free_generations_used", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("free_generations_limit", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("last_generation_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_banned", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("banned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ban_reason", sa.String(length=500), nullable=True),
        sa.Column("banned_by", sa.BigInteger(), nullable=True),
        sa.Column("is_suspended", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("suspended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("suspension_reason", sa.String(length=500), nullable=True),
        sa.Column("suspension_expires_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "generation_ips",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("ip", sa.String(length=64), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "ip", name="uq_generation_ip_user_ip"),
    )
    op.create_index("ix_generation_ips_user_id", "generation_ips", ["user_id"])
    op.create_index("ix_generation_ips_ip", "generation_ips", ["ip"])

    for table in ("verification_tokens", "password_reset_tokens"):
        columns = [
            sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("token", sa.String(length=64), nullable=False),
            sa.Column("expires", sa.DateTime(timezone=True), nullable=False),
            *_timestamps(updated=False),
            sa.UniqueConstraint("token", name=f"uq_{table}_token"),
        ]
        if table == "verification_tokens":
            columns.insert(2, sa.Column("user_id", sa.BigInteger(), nullable=True))
        op.create_table(table, *columns)
        op.create_index(f"ix_{table}_email", table, ["email"])
        op.create_index(f"ix_{table}_token", table, ["token"], unique=True)

    op.create_table(
        "otp_confirmations",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=8), nullable=False),
        sa.Column("expires", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index("ix_otp_confirmations_email", "otp_confirmations", ["email"])

    op.create_table(
        "plans",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("nuts_per_month", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("images_per_day", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("images_per_generation", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("monthly_price", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("yearly_price", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("features", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("name", name="uq_plans_name"),
    )
    op.create_index("ix_plans_name", "plans", ["name"], unique=True)

    op.create_table(
        "plan_features",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("plan_id", sa.BigInteger(), nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.ForeignKeyConstraint(["plan_id"], ["plans.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_plan_features_plan_id", "plan_features", ["plan_id"])

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("plan_id", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("billing_cycle", sa.String(length=16), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("next_billing_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_method", sa.String(length=128), nullable=True),
        sa.Column("cancel_reason", sa.String(length=500), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["plan_id"], ["plans.id"]),
    )
    op.create_index("ix_subscriptions_user_id", "subscriptions", ["user_id"], unique=True)
    op.create_index("ix_subscriptions_plan_id", "subscriptions", ["plan_id"])

    op.create_table(
        "subscription_history",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("plan_id", sa.BigInteger(), nullable=False),
        sa.Column("action", sa.String(length=16), nullable=False),
        sa.Column("billing_cycle", sa.String(length=16), nullable=True),
        sa.Column("amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("reason", sa.String(length=500), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["plan_id"], ["plans.id"]),
    )
    op.create_index("ix_subscription_history_user_id", "subscription_history", ["user_id"])

    op.create_table(
        "usage_records",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("nuts_used", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("images_generated", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("videos_generated", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_usage_records_user_id", "usage_records", ["user_id"])

    op.create_table(
        "generated_images",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.Column("negative_prompt", sa.Text(), nullable=True),
        sa.Column("model", sa.String(length=32), nullable=False),
        sa.Column("width", sa.Integer(), nullable=False),
        sa.Column("height", sa.Integer(), nullable=False),
        sa.Column("seed", sa.BigInteger(), nullable=True),
        sa.Column("steps", sa.Integer(), nullable=True),
        sa.Column("guidance_scale", sa.Float(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("task_id", sa.String(length=128), nullable=True),
        sa.Column("eta", sa.Float(), nullable=True),
        sa.Column("progress", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("future_links", sa.JSON(), nullable=False),
        sa.Column("image_url", sa.String(length=1024), nullable=True),
        sa.Column("path", sa.String(length=512), nullable=True),
        sa.Column("verified", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("cost_nuts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("upvotes", sa.Integer(), nullable=True, server_default=sa.text("0")),
        sa.Column("downvotes", sa.Integer(), nullable=True, server_default=sa.text("0")),
        sa.Column("vote_score", sa.Integer(), nullable=True, server_default=sa.text("0")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_generated_images_user_id", "generated_images", ["user_id"])
    op.create_index("ix_generated_images_status", "generated_images", ["status"])
    op.create_index("ix_generated_images_task_id", "generated_images", ["task_id"])
    op.create_index("ix_generated_images_created_at", "generated_images", ["created_at"])

    op.create_table(
        "generated_videos",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.Column("negative_prompt", sa.Text(), nullable=True),
        sa.Column("width", sa.Integer(), nullable=False),
        sa.Column("height", sa.Integer(), nullable=False),
        sa.Column("fps", sa.Integer(), nullable=False),
        sa.Column("frames", sa.Integer(), nullable=False),
        sa.Column("steps", sa.Integer(), nullable=False),
        sa.Column("seed", sa.BigInteger(), nullable=True),
        sa.Column("source_image_url", sa.String(length=1024), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("task_id", sa.String(length=128), nullable=True),
        sa.Column("eta", sa.Float(), nullable=True),
        sa.Column("progress", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("future_links", sa.JSON(), nullable=False),
        sa.Column("video_url", sa.String(length=1024), nullable=True),
        sa.Column("path", sa.String(length=512), nullable=True),
        sa.Column("verified", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("cost_nuts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_generated_videos_user_id", "generated_videos", ["user_id"])
    op.create_index("ix_generated_videos_status", "generated_videos", ["status"])
    op.create_index("ix_generated_videos_task_id", "generated_videos", ["task_id"])
    op.create_index("ix_generated_videos_created_at", "generated_videos", ["created_at"])

    op.create_table(
        "image_votes",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("image_id", sa.BigInteger(), nullable=False),
        sa.Column("vote_type", sa.String(length=16), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["image_id"], ["generated_images.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "image_id", name="uq_image_vote_user_image"),
    )
    op.create_index("ix_image_votes_user_id", "image_votes", ["user_id"])
    op.create_index("ix_image_votes_image_id", "image_votes", ["image_id"])

    op.create_table(
        "image_comments",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("image_id", sa.BigInteger(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["image_id"], ["generated_images.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_image_comments_user_id", "image_comments", ["user_id"])
    op.create_index("ix_image_comments_image_id", "image_comments", ["image_id"])

    op.create_table(
        "categories",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("keywords", sa.JSON(), nullable=False),
        *_timestamps(updated=False),
        sa.UniqueConstraint("name", name="uq_categories_name"),
    )
    op.create_index("ix_categories_name", "categories", ["name"], unique=True)

    op.create_table(
        "image_categories",
        sa.Column("image_id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("category_id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.ForeignKeyConstraint(["image_id"], ["generated_images.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"], ondelete="CASCADE"),
    )

    op.create_table(
        "characters",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("slug", sa.String(length=80), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("personality", sa.String(length=16), nullable=False),
        sa.Column("appearance", sa.String(length=16), nullable=False),
        sa.Column("system_prompt", sa.Text(), nullable=False),
        sa.Column("portrait_url", sa.String(length=1024), nullable=True),
        sa.Column("portrait_seed", sa.BigInteger(), nullable=False),
        sa.Column("voice_id", sa.String(length=64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_characters_user_id", "characters", ["user_id"])
    op.create_index("ix_characters_slug", "characters", ["slug"])

    op.create_table(
        "chat_messages",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("character_id", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("audio_url", sa.String(length=1024), nullable=True),
        sa.Column("video_url", sa.String(length=1024), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["character_id"], ["characters.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_chat_messages_character_id", "chat_messages", ["character_id"])
    op.create_index("ix_chat_messages_user_id", "chat_messages", ["user_id"])
    op.create_index("ix_chat_messages_created_at", "chat_messages", ["created_at"])

    op.create_table(
        "payment_events",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("provider", sa.String(length=16), nullable=False),
        sa.Column("event_id", sa.String(length=128), nullable=False),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        *_timestamps(updated=False),
        sa.UniqueConstraint("provider", "event_id", name="uq_payment_event_provider_id"),
    )
    op.create_index("ix_payment_events_event_id", "payment_events", ["event_id"])


def downgrade() -> None:
    for table in (
        "payment_events",
        "chat_messages",
        "characters",
        "image_categories",
        "categories",
        "image_comments",
        "image_votes",
        "generated_videos",
        "generated_images",
        "usage_records",
        "subscription_history",
        "subscriptions",
        "plan_features",
        "plans",
        "otp_confirmations",
        "password_reset_tokens",
        "verification_tokens",
        "generation_ips",
        "users",
    ):
        op.drop_table(table)
