"""Email templates, resumes and email analytics

Revision ID: 0002_templates_resumes_analytics
Revises: 0001_initial_schema
Create Date: 2026-10-19

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0002_templates_resumes_analytics"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None


def _has_table(insp: sa.Inspector, table: str) -> bool:
    return table in insp.get_table_names()


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    insp = sa.inspect(op.get_bind())

    if not _has_table(insp, "email_templates"):
        op.create_table(
            "email_templates",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("subject", sa.String(length=500), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(),
        )
        op.create_index("ix_email_templates_user_id", "email_templates", ["user_id"], unique=False)

    if not _has_table(insp, "resumes"):
        op.create_table(
            "resumes",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("file_name", sa.String(length=255), nullable=False),
            sa.Column("file_path", sa.String(length=600), nullable=False),
            sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(),
        )
        op.create_index("ix_resumes_user_id", "resumes", ["user_id"], unique=False)

    if not _has_table(insp, "email_analytics"):
        op.create_table(
            "email_analytics",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "application_id",
                sa.Integer(),
                sa.ForeignKey("job_applications.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("event", sa.String(length=20), nullable=False),
            sa.Column("metadata_json", sa.JSON(), nullable=False),
            *_timestamps(),
        )
        op.create_index("ix_email_analytics_application_id", "email_analytics", ["application_id"], unique=False)


def downgrade() -> None:
    insp = sa.inspect(op.get_bind())

    for table in ("email_analytics", "resumes", "email_templates"):
        if _has_table(insp, table):
            op.drop_table(table)
