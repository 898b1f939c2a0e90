"""baseline

Revision ID: 20261001090000
Revises:
Create Date: 2026-10-01T09:00:00.000000Z
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261001090000"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "surveys",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("requesting_unit", sa.String(200), nullable=True),
        sa.Column("opens_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closes_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("manually_closed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("target_org_types_json", sa.Text(), nullable=True),
        sa.Column("fields_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_surveys_title", "surveys", ["title"])

    op.create_table(
        "submissions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("survey_id", sa.String(36), sa.ForeignKey("surveys.id", ondelete="CASCADE"), nullable=False),
        sa.Column("organization_id", sa.String(120), nullable=False),
        sa.Column("organization_code", sa.String(120), nullable=False),
        sa.Column("organization_name", sa.String(200), nullable=True),
        sa.Column("answers_json", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("survey_id", "organization_code", name="uq_survey_org"),
    )
    op.create_index("ix_submissions_survey_id", "submissions", ["survey_id"])
    op.create_index("ix_submissions_organization_id", "submissions", ["organization_id"])
    op.create_index("ix_submissions_organization_code", "submissions", ["organization_code"])
    op.create_index("ix_submissions_submitted_at", "submissions", ["submitted_at"])

    op.create_table(
        "survey_templates",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("fields_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_survey_templates_name", "survey_templates", ["name"])


def downgrade() -> None:
    op.drop_index("ix_survey_templates_name", table_name="survey_templates")
    op.drop_table("survey_templates")
    for name in ("ix_submissions_submitted_at", "ix_submissions_organization_code", "ix_submissions_organization_id", "ix_submissions_survey_id"):
        op.drop_index(name, table_name="submissions")
    op.drop_table("submissions")
    op.drop_index("ix_surveys_title", table_name="surveys")
    op.drop_table("surveys")
