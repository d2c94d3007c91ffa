"""Initial schema: users, sessions, verification tokens, OAuth, badges.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps(*, deleted: bool = False) -> list[sa.Column]:
    cols = [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]
    if deleted:
        cols.append(sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True))
    return cols


def upgrade() -> None:
    """Create every table."""
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(as_uuid=False), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(100), nullable=True),
        sa.Column("phone_number", sa.String(20), nullable=True),
        sa.Column("avatar_url", sa.String(255), nullable=True),
        sa.Column("global_role", sa.String(20), server_default="USER", nullable=False),
        sa.Column("is_email_verified", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("is_phone_verified", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(deleted=True),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    # --- sessions ---
    op.create_table(
        "sessions",
        sa.Column("id", sa.Uuid(as_uuid=False), nullable=False),
        sa.Column("user_id", sa.Uuid(as_uuid=False), nullable=False),
        sa.Column("token", sa.String(255), nullable=False),
        sa.Column("refresh_token", sa.String(255), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("refresh_token_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("device_info", postgresql.JSONB(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_sessions"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_sessions_user_id_users", ondelete="CASCADE"),
        sa.UniqueConstraint("token", name="uq_sessions_token"),
        sa.UniqueConstraint("refresh_token", name="uq_sessions_refresh_token"),
    )
    op.create_index("ix_sessions_user_id", "sessions", ["user_id"])

    # --- verification_tokens ---
    op.create_table(
        "verification_tokens",
        sa.Column("id", sa.Uuid(as_uuid=False), nullable=False),
        sa.Column("user_id", sa.Uuid(as_uuid=False), nullable=False),
        sa.Column("token", sa.String(255), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_verification_tokens"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_verification_tokens_user_id_users", ondelete="CASCADE"
        ),
        sa.UniqueConstraint("token", name="uq_verification_tokens_token"),
    )
    op.create_index("ix_verification_tokens_user_id", "verification_tokens", ["user_id"])
    op.create_index("ix_verification_tokens_type", "verification_tokens", ["type"])

    # --- oauth_providers ---
    op.create_table(
        "oauth_providers",
        sa.Column("id", sa.Uuid(as_uuid=False), nullable=False),
        sa.Column("provider_name", sa.String(50), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("client_id", sa.String(255), nullable=False),
        sa.Column("client_secret", sa.String(255), nullable=False),
        sa.Column("auth_url", sa.String(255), nullable=False),
        sa.Column("token_url", sa.String(255), nullable=False),
        sa.Column("user_info_url", sa.String(255), nullable=False),
        sa.Column("redirect_url", sa.String(255), nullable=False),
        sa.Column("scope", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("icon_url", sa.String(255), nullable=True),
        *_timestamps(deleted=True),
        sa.PrimaryKeyConstraint("id", name="pk_oauth_providers"),
        sa.UniqueConstraint("provider_name", name="uq_oauth_providers_provider_name"),
    )

    # --- user_oauth_connections ---
    op.create_table(
        "user_oauth_connections",
        sa.Column("id", sa.Uuid(as_uuid=False), nullable=False),
        sa.Column("user_id", sa.Uuid(as_uuid=False), nullable=False),
        sa.Column("provider_id", sa.Uuid(as_uuid=False), nullable=False),
        sa.Column("provider_user_id", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("avatar_url", sa.String(255), nullable=True),
        sa.Column("access_token", sa.Text(), nullable=True),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("raw_user_info", postgresql.JSONB(), nullable=True),
        *_timestamps(deleted=True),
        sa.PrimaryKeyConstraint("id", name="pk_user_oauth_connections"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_user_oauth_connections_user_id_users", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["provider_id"],
            ["oauth_providers.id"],
            name="fk_user_oauth_connections_provider_id_oauth_providers",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("user_id", "provider_id", name="uq_user_oauth_connections_user_provider"),
        sa.UniqueConstraint(
            "provider_id", "provider_user_id", name="uq_user_oauth_connections_provider_identity"
        ),
    )
    op.create_index("ix_user_oauth_connections_user_id", "user_oauth_connections", ["user_id"])
    op.create_index("ix_user_oauth_connections_provider_id", "user_oauth_connections", ["provider_id"])

    # --- badges ---
    op.create_table(
        "badges",
        sa.Column("id", sa.Uuid(as_uuid=False), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(255), nullable=True),
        *_timestamps(deleted=True),
        sa.PrimaryKeyConstraint("id", name="pk_badges"),
    )

    op.create_table(
        "user_badges",
        sa.Column("id", sa.Uuid(as_uuid=False), nullable=False),
        sa.Column("user_id", sa.Uuid(as_uuid=False), nullable=False),
        sa.Column("badge_id", sa.Uuid(as_uuid=False), nullable=False),
        *_timestamps(deleted=True),
        sa.PrimaryKeyConstraint("id", name="pk_user_badges"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_user_badges_user_id_users", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["badge_id"], ["badges.id"], name="fk_user_badges_badge_id_badges", ondelete="CASCADE"
        ),
        sa.UniqueConstraint("user_id", "badge_id", name="uq_user_badges_user_badge"),
    )
    op.create_index("ix_user_badges_user_id", "user_badges", ["user_id"])
    op.create_index("ix_user_badges_badge_id", "user_badges", ["badge_id"])


def downgrade() -> None:
    """Drop every table, dependents first."""
    op.drop_table("user_badges")
    op.drop_table("badges")
    op.drop_table("user_oauth_connections")
    op.drop_table("oauth_providers")
    op.drop_table("verification_tokens")
    op.drop_table("sessions")
    op.drop_table("users")
