"""Initial schema: users, profiles, emails, sync state, AI usage, Gmail connections, OAuth state.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    existing = set(sa.inspect(conn).get_table_names())

    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("name", sa.String(), nullable=True),
            sa.Column("picture", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
        )
        op.create_index(op.f("ix_users_id"), "users", ["id"])
        op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    if "user_profiles" not in existing:
        op.create_table(
            "user_profiles",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_email", sa.String(), nullable=False),
            sa.Column("name", sa.String(), nullable=True),
            sa.Column("location", sa.String(), nullable=True),
            sa.Column("about_me", sa.Text(), nullable=True),
            sa.Column("skills", sa.JSON(), nullable=True),
            sa.Column("experience", sa.JSON(), nullable=True),
            sa.Column("education", sa.JSON(), nullable=True),
            sa.Column("contact_email", sa.String(), nullable=True),
            sa.Column("phone", sa.String(), nullable=True),
            sa.Column("linkedin", sa.String(), nullable=True),
            sa.Column("github", sa.String(), nullable=True),
            sa.Column("portfolio", sa.String(), nullable=True),
            sa.Column("resume_data", sa.Text(), nullable=True),
            sa.Column("resume_mime_type", sa.String(), nullable=True),
            sa.Column("resume_file_name", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
        )
        op.create_index(op.f("ix_user_profiles_id"), "user_profiles", ["id"])
        op.create_index(op.f("ix_user_profiles_user_email"), "user_profiles", ["user_email"], unique=True)

    if "user_emails" not in existing:
        op.create_table(
            "user_emails",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_email", sa.String(), nullable=False),
            sa.Column("external_id", sa.String(), nullable=False),
            sa.Column("sender", sa.String(), nullable=True),
            sa.Column("subject", sa.Text(), nullable=True),
            sa.Column("body", sa.Text(), nullable=True),
            sa.Column("date", sa.DateTime(), nullable=False),
            sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("category", sa.String(), nullable=True),
            sa.Column("priority", sa.String(), nullable=True),
            sa.Column("summary", sa.Text(), nullable=True),
            sa.Column("suggested_action", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
        )
        op.create_index(op.f("ix_user_emails_id"), "user_emails", ["id"])
        op.create_index(op.f("ix_user_emails_user_email"), "user_emails", ["user_email"])
        op.create_index(op.f("ix_user_emails_category"), "user_emails", ["category"])
        op.create_index("ix_user_emails_user_external", "user_emails", ["user_email", "external_id"], unique=True)
        op.create_index("ix_user_emails_user_date", "user_emails", ["user_email", "date"])

    if "sync_state" not in existing:
        op.create_table(
            "sync_state",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_email", sa.String(), nullable=False),
            sa.Column("last_synced_at", sa.DateTime(), nullable=True),
            sa.Column("status", sa.String(), nullable=True),
            sa.Column("error", sa.Text(), nullable=True),
            sa.Column("processed", sa.Integer(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
        )
        op.create_index(op.f("ix_sync_state_id"), "sync_state", ["id"])
        op.create_index(op.f("ix_sync_state_user_email"), "sync_state", ["user_email"], unique=True)

    if "ai_usage" not in existing:
        op.create_table(
            "ai_usage",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_email", sa.String(), nullable=False),
            sa.Column("operation_type", sa.String(50), nullable=False),
            sa.Column("input_tokens", sa.Integer(), nullable=True),
            sa.Column("output_tokens", sa.Integer(), nullable=True),
            sa.Column("total_tokens", sa.Integer(), nullable=True),
            sa.Column("model_used", sa.String(100), nullable=True),
            sa.Column("success", sa.Boolean(), nullable=True),
            sa.Column("error_message", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )
        op.create_index(op.f("ix_ai_usage_id"), "ai_usage", ["id"])
        op.create_index(op.f("ix_ai_usage_user_email"), "ai_usage", ["user_email"])
        op.create_index(op.f("ix_ai_usage_operation_type"), "ai_usage", ["operation_type"])
        op.create_index(op.f("ix_ai_usage_created_at"), "ai_usage", ["created_at"])
        op.create_index("ix_ai_usage_user_created", "ai_usage", ["user_email", "created_at"])

    if "gmail_settings" not in existing:
        op.create_table(
            "gmail_settings",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_email", sa.String(), nullable=False),
            sa.Column("is_connected", sa.Boolean(), nullable=True),
            sa.Column("connected_gmail", sa.String(), nullable=True),
            sa.Column("access_token", sa.Text(), nullable=True),
            sa.Column("refresh_token", sa.Text(), nullable=True),
            sa.Column("token_expiry", sa.DateTime(), nullable=True),
            sa.Column("last_sync", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
        )
        op.create_index(op.f("ix_gmail_settings_id"), "gmail_settings", ["id"])
        op.create_index(op.f("ix_gmail_settings_user_email"), "gmail_settings", ["user_email"], unique=True)

    if "oauth_state" not in existing:
        op.create_table(
            "oauth_state",
            sa.Column("state_token", sa.String(64), primary_key=True),
            sa.Column("user_email", sa.String(), nullable=False),
            sa.Column("redirect_url", sa.String(512), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index(op.f("ix_oauth_state_user_email"), "oauth_state", ["user_email"])


def downgrade() -> None:
    for table in (
        "oauth_state",
        "gmail_settings",
        "ai_usage",
        "sync_state",
        "user_emails",
        "user_profiles",
        "users",
    ):
        op.drop_table(table)
