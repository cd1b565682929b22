"""Initial grant portal schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates all tables for the grant portal:
- users, user_changes: accounts and the admin edit audit trail
- grants, proposals, reviews: the funding workflow
- reports: monthly snapshots
- notifications: in-app notifications written by the outbox task
- announcements, threads, thread_replies, resources, contact_messages
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# Revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ENUMS = {
    "user_role": ("researcher", "reviewer", "admin"),
    "user_status": ("active", "inactive", "pending"),
    "grant_status": ("Active", "Closed"),
    "grant_category": ("Technology", "Environment", "Health", "Education", "Agriculture"),
    "proposal_status": ("Draft", "Under Review", "Approved", "Rejected", "Needs Revision"),
    "review_status": ("Pending", "In Progress", "Completed"),
    "review_decision": ("Approved", "Rejected", "Revisions Requested"),
    "report_status": ("Final", "Draft"),
    "notification_type": (
        "PROPOSAL_SUBMITTED",
        "REVIEW_COMPLETED",
        "GRANT_DEADLINE",
        "SYSTEM_ALERT",
        "NEW_GRANT",
        "PROPOSAL_STATUS_UPDATE",
        "GRANT_DEADLINE_REMINDER",
        "APPLICATION_DEADLINE",
        "REVIEW_ASSIGNED",
        "REVIEW_DEADLINE_REMINDER",
        "PROPOSAL_STATUS_CHANGE",
    ),
    "notification_priority": ("low", "medium", "high"),
    "announcement_priority": ("Low", "Medium", "High"),
}


def _enum(name: str) -> postgresql.ENUM:
    # Types are created up front; grant_category is shared by two tables
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Create initial database schema."""
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    # ==========================================================================
    # Users
    # ==========================================================================
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("first_name", sa.String(50), nullable=False),
        sa.Column("last_name", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", _enum("user_role"), nullable=False),
        sa.Column("institution", sa.String(100), nullable=False),
        sa.Column("department", sa.String(100), nullable=True),
        sa.Column("profile_image", sa.Text(), nullable=True),
        sa.Column("status", _enum("user_status"), nullable=False),
        sa.Column("is_email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("email_verification_token_hash", sa.String(64), nullable=True),
        sa.Column("email_verification_expires", sa.DateTime(), nullable=True),
        sa.Column("last_modified_by_id", sa.Uuid(), nullable=True),
        sa.Column("last_modified_by_name", sa.String(101), nullable=True),
        sa.Column("last_modified_by_email", sa.String(255), nullable=True),
        sa.Column("last_modified_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_email_verification_token_hash", "users", ["email_verification_token_hash"])

    op.create_table(
        "user_changes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("admin_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("admin_name", sa.String(101), nullable=True),
        sa.Column("admin_email", sa.String(255), nullable=True),
        sa.Column("field", sa.String(50), nullable=False),
        sa.Column("old_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        sa.Column("changed_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_user_changes_user_id", "user_changes", ["user_id"])

    # ==========================================================================
    # Grants, proposals, reviews
    # ==========================================================================
    op.create_table(
        "grants",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", _enum("grant_category"), nullable=False),
        sa.Column("funding", sa.Numeric(14, 2), nullable=False),
        sa.Column("deadline", sa.DateTime(), nullable=False),
        sa.Column("requirements", sa.Text(), nullable=False),
        sa.Column("status", _enum("grant_status"), nullable=False),
        sa.Column("applicants", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("approved", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_grants_status_deadline", "grants", ["status", "deadline"])

    op.create_table(
        "proposals",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("abstract", sa.Text(), nullable=False),
        sa.Column("objectives", sa.Text(), nullable=False),
        sa.Column("methodology", sa.Text(), nullable=False),
        sa.Column("timeline", sa.Text(), nullable=False),
        sa.Column("expected_outcomes", sa.Text(), nullable=True),
        sa.Column("status", _enum("proposal_status"), nullable=False),
        sa.Column("date_submitted", sa.DateTime(), nullable=True),
        sa.Column("deadline", sa.DateTime(), nullable=False),
        sa.Column("funding", sa.Numeric(14, 2), nullable=False),
        sa.Column("category", _enum("grant_category"), nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("personnel_costs", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("equipment_costs", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("materials_costs", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("travel_costs", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("other_costs", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("proposal_document", sa.Text(), nullable=False),
        sa.Column("cv_resume", sa.Text(), nullable=True),
        sa.Column("additional_documents", sa.JSON(), nullable=False),
        sa.Column("recommended_score", sa.Integer(), nullable=True),
        sa.Column("recommendation", sa.String(64), nullable=True),
        sa.Column("researcher_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("grant_id", sa.Uuid(), sa.ForeignKey("grants.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("reviewer_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_proposals_status", "proposals", ["status"])
    op.create_index("ix_proposals_date_submitted", "proposals", ["date_submitted"])
    op.create_index("ix_proposals_researcher_id", "proposals", ["researcher_id"])
    op.create_index("ix_proposals_grant_id", "proposals", ["grant_id"])

    op.create_table(
        "reviews",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("proposal_id", sa.Uuid(), sa.ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("reviewer_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("status", _enum("review_status"), nullable=False),
        sa.Column("decision", _enum("review_decision"), nullable=True),
        sa.Column("score", sa.Float(), nullable=True),
        sa.Column("innovation_score", sa.Float(), nullable=True),
        sa.Column("impact_score", sa.Float(), nullable=True),
        sa.Column("feasibility_score", sa.Float(), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("review_date", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("proposal_id", "reviewer_id", name="uq_reviews_proposal_reviewer"),
    )
    op.create_index("ix_reviews_proposal_id", "reviews", ["proposal_id"])
    op.create_index("ix_reviews_reviewer_id", "reviews", ["reviewer_id"])

    # ==========================================================================
    # Reports and notifications
    # ==========================================================================
    op.create_table(
        "reports",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("period", sa.String(7), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("total_proposals", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("approved", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rejected", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("pending", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_funding", sa.String(32), nullable=False),
        sa.Column("average_score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("active_grants", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("closed_grants", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("generated_date", sa.String(10), nullable=False),
        sa.Column("status", _enum("report_status"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_reports_period", "reports", ["period"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("recipient_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sender_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("type", _enum("notification_type"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("priority", _enum("notification_priority"), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_notifications_recipient_read", "notifications", ["recipient_id", "read"])
    op.create_index("ix_notifications_recipient_created", "notifications", ["recipient_id", "created_at"])

    # ==========================================================================
    # Portal content
    # ==========================================================================
    op.create_table(
        "announcements",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("excerpt", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("priority", _enum("announcement_priority"), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("author", sa.String(255), nullable=True),
        sa.Column("read_time", sa.String(50), nullable=True),
        sa.Column("views", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("pinned", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )

    op.create_table(
        "threads",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("domain", sa.String(100), nullable=False),
        sa.Column("author", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "thread_replies",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("thread_id", sa.Uuid(), sa.ForeignKey("threads.id", ondelete="CASCADE"), nullable=False),
        sa.Column("author", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_thread_replies_thread_id", "thread_replies", ["thread_id"])

    op.create_table(
        "resources",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(50), nullable=True),
        sa.Column("link", sa.Text(), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "contact_messages",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        *_timestamps(),
    )


def downgrade() -> None:
    """Drop all tables and enum types."""
    for table in (
        "contact_messages",
        "resources",
        "thread_replies",
        "threads",
        "announcements",
        "notifications",
        "reports",
        "reviews",
        "proposals",
        "grants",
        "user_changes",
        "users",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
