"""Initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17

Users, membership applications with their renewal and resignation records,
the membership number sequence, the notification outbox and the audit log.
"""

import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("public_id", sa.String(32), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="staff"),
        sa.Column("is_active_account", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.Column("failed_login_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("locked_until", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "membership_applications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("public_id", sa.String(32), nullable=False, unique=True),
        # Applicant
        sa.Column("first_name", sa.String(50), nullable=False),
        sa.Column("last_name", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(17), nullable=False),
        sa.Column("id_number", sa.String(8), nullable=False),
        sa.Column("county", sa.String(50), nullable=False),
        sa.Column("constituency", sa.String(100), nullable=True),
        sa.Column("ward", sa.String(100), nullable=True),
        sa.Column("message", sa.String(500), nullable=True),
        # Review
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("review_notes", sa.String(500), nullable=True),
        sa.Column("reviewed_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.Column("membership_number", sa.String(20), nullable=True, unique=True),
        # Membership term
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("suspended_at", sa.DateTime(), nullable=True),
        sa.Column("suspension_reason", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_membership_applications_status",
        ),
        sa.CheckConstraint(
            "(status = 'pending' AND reviewed_at IS NULL) OR (status != 'pending' AND reviewed_at IS NOT NULL)",
            name="ck_membership_applications_review_state",
        ),
        sa.CheckConstraint(
            "membership_number IS NULL OR status = 'approved'",
            name="ck_membership_applications_number_on_approval",
        ),
    )
    op.create_index("ix_membership_applications_email", "membership_applications", ["email"], unique=True)
    op.create_index("ix_membership_applications_id_number", "membership_applications", ["id_number"], unique=True)
    op.create_index("ix_membership_applications_county", "membership_applications", ["county"])
    op.create_index("ix_membership_applications_status", "membership_applications", ["status"])
    op.create_index("ix_membership_applications_created_at", "membership_applications", ["created_at"])

    op.create_table(
        "membership_sequences",
        sa.Column("name", sa.String(50), primary_key=True),
        sa.Column("value", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "membership_renewals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("transaction_id", sa.String(40), nullable=False, unique=True),
        sa.Column(
            "application_id",
            sa.Integer(),
            sa.ForeignKey("membership_applications.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("payment_method", sa.String(20), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("new_expires_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
    )

    op.create_table(
        "resignation_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("reference", sa.String(40), nullable=False, unique=True),
        sa.Column("reason", sa.String(100), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("membership_number", sa.String(20), nullable=True, index=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("recipient", sa.String(255), nullable=False),
        sa.Column("kind", sa.String(50), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending", index=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp(), index=True),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("timestamp", sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp(), index=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("action", sa.String(100), nullable=False, index=True),
        sa.Column("target_type", sa.String(50), nullable=True),
        sa.Column("target_id", sa.Integer(), nullable=True),
        sa.Column("detail", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
    )


def downgrade():
    op.drop_table("audit_logs")
    op.drop_table("notifications")
    op.drop_table("resignation_requests")
    op.drop_table("membership_renewals")
    op.drop_table("membership_sequences")
    op.drop_index("ix_membership_applications_created_at", table_name="membership_applications")
    op.drop_index("ix_membership_applications_status", table_name="membership_applications")
    op.drop_index("ix_membership_applications_county", table_name="membership_applications")
    op.drop_index("ix_membership_applications_id_number", table_name="membership_applications")
    op.drop_index("ix_membership_applications_email", table_name="membership_applications")
    op.drop_table("membership_applications")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
