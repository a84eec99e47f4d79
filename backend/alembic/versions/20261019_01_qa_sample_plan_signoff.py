"""Create sample plan, evidence review and unit confirmation tables."""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "20261019_01"
down_revision: str | Sequence[str] | None = None
branch_labels = None
depends_on = None


def _uuid(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), **kwargs)


def upgrade() -> None:
    """Create the sign-off schema."""

    op.create_table(
        "users",
        _uuid("id", primary_key=True),
        sa.Column("email", sa.String(), nullable=False, unique=True),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False, server_default="Learner"),
        sa.Column("is_admin", sa.Boolean(), nullable=True, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=True, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "courses",
        _uuid("id", primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("course_core_type", sa.String(), nullable=False, server_default="Standard"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "course_units",
        _uuid("id", primary_key=True),
        _uuid("course_id", nullable=False),
        sa.Column("unit_code", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("unit_type", sa.String(), nullable=False, server_default="unit"),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("course_id", "unit_code"),
    )
    op.create_index("ix_course_units_course_id", "course_units", ["course_id"])

    op.create_table(
        "course_sub_units",
        _uuid("id", primary_key=True),
        _uuid("unit_id", nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["unit_id"], ["course_units.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_course_sub_units_unit_id", "course_sub_units", ["unit_id"])

    op.create_table(
        "sample_plans",
        _uuid("id", primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        _uuid("course_id", nullable=False),
        _uuid("iqa_id", nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"]),
        sa.ForeignKeyConstraint(["iqa_id"], ["users.id"]),
    )
    op.create_index("ix_sample_plans_course_id", "sample_plans", ["course_id"])

    op.create_table(
        "sample_plan_learners",
        _uuid("id", primary_key=True),
        _uuid("plan_id", nullable=False),
        _uuid("learner_id", nullable=True),
        sa.Column("learner_name", sa.String(), nullable=False),
        sa.Column("assessor_name", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=True),
        sa.Column("risk_level", sa.String(), nullable=True),
        sa.Column("sample_type", sa.String(), nullable=True),
        sa.Column("planned_date", sa.Date(), nullable=True),
        sa.Column("assessment_methods", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["plan_id"], ["sample_plans.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["learner_id"], ["users.id"]),
    )
    op.create_index("ix_sample_plan_learners_plan_id", "sample_plan_learners", ["plan_id"])

    op.create_table(
        "sampled_units",
        _uuid("id", primary_key=True),
        _uuid("plan_learner_id", nullable=False),
        _uuid("course_unit_id", nullable=True),
        sa.Column("unit_code", sa.String(), nullable=False),
        sa.Column("unit_name", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=True),
        sa.Column("sample_history", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["plan_learner_id"], ["sample_plan_learners.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["course_unit_id"], ["course_units.id"]),
        sa.UniqueConstraint("plan_learner_id", "unit_code"),
    )
    op.create_index("ix_sampled_units_plan_learner_id", "sampled_units", ["plan_learner_id"])

    op.create_table(
        "evidence_items",
        _uuid("id", primary_key=True),
        _uuid("sampled_unit_id", nullable=False),
        sa.Column("unit_code", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("grade", sa.String(), nullable=True),
        sa.Column("assessment_methods", sa.JSON(), nullable=True),
        _uuid("created_by", nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["sampled_unit_id"], ["sampled_units.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
    )
    op.create_index("ix_evidence_items_sampled_unit_id", "evidence_items", ["sampled_unit_id"])
    op.create_index("ix_evidence_items_unit_code", "evidence_items", ["unit_code"])

    op.create_table(
        "evidence_reviews",
        _uuid("id", primary_key=True),
        _uuid("evidence_id", nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("comment", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("signed_off_at", sa.DateTime(), nullable=True),
        sa.Column("signed_off_by", sa.String(), nullable=True),
        _uuid("signed_off_by_id", nullable=True),
        sa.Column("file_name", sa.String(), nullable=True),
        sa.Column("file_type", sa.String(), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("storage_path", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["evidence_id"], ["evidence_items.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["signed_off_by_id"], ["users.id"]),
        sa.UniqueConstraint("evidence_id", "role"),
    )
    op.create_index("ix_evidence_reviews_evidence_id", "evidence_reviews", ["evidence_id"])

    op.create_table(
        "evidence_sub_unit_mappings",
        _uuid("id", primary_key=True),
        _uuid("evidence_id", nullable=False),
        _uuid("sub_unit_id", nullable=False),
        sa.Column("learner_mapped", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("trainer_mapped", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("signed_off", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("signed_off_at", sa.DateTime(), nullable=True),
        _uuid("signed_off_by_id", nullable=True),
        sa.ForeignKeyConstraint(["evidence_id"], ["evidence_items.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sub_unit_id"], ["course_sub_units.id"]),
        sa.ForeignKeyConstraint(["signed_off_by_id"], ["users.id"]),
        sa.UniqueConstraint("evidence_id", "sub_unit_id"),
    )
    op.create_index("ix_evidence_sub_unit_mappings_evidence_id", "evidence_sub_unit_mappings", ["evidence_id"])

    op.create_table(
        "unit_confirmations",
        _uuid("id", primary_key=True),
        _uuid("sampled_unit_id", nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("sequence_index", sa.Integer(), nullable=False),
        sa.Column("statement", sa.Text(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("comments", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("signed_off_by", sa.String(), nullable=True),
        _uuid("signed_off_by_id", nullable=True),
        sa.Column("dated", sa.DateTime(), nullable=True),
        sa.Column("file_name", sa.String(), nullable=True),
        sa.Column("file_type", sa.String(), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("storage_path", sa.String(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["sampled_unit_id"], ["sampled_units.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["signed_off_by_id"], ["users.id"]),
        sa.UniqueConstraint("sampled_unit_id", "role"),
        sa.UniqueConstraint("sampled_unit_id", "sequence_index"),
    )
    op.create_index("ix_unit_confirmations_sampled_unit_id", "unit_confirmations", ["sampled_unit_id"])

    op.create_table(
        "audit_logs",
        _uuid("id", primary_key=True),
        _uuid("user_id", nullable=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("target_type", sa.String(), nullable=True),
        _uuid("target_id", nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
    )


def downgrade() -> None:
    """Drop the sign-off schema."""

    op.drop_table("audit_logs")
    op.drop_index("ix_unit_confirmations_sampled_unit_id", table_name="unit_confirmations")
    op.drop_table("unit_confirmations")
    op.drop_index("ix_evidence_sub_unit_mappings_evidence_id", table_name="evidence_sub_unit_mappings")
    op.drop_table("evidence_sub_unit_mappings")
    op.drop_index("ix_evidence_reviews_evidence_id", table_name="evidence_reviews")
    op.drop_table("evidence_reviews")
    op.drop_index("ix_evidence_items_unit_code", table_name="evidence_items")
    op.drop_index("ix_evidence_items_sampled_unit_id", table_name="evidence_items")
    op.drop_table("evidence_items")
    op.drop_index("ix_sampled_units_plan_learner_id", table_name="sampled_units")
    op.drop_table("sampled_units")
    op.drop_index("ix_sample_plan_learners_plan_id", table_name="sample_plan_learners")
    op.drop_table("sample_plan_learners")
    op.drop_index("ix_sample_plans_course_id", table_name="sample_plans")
    op.drop_table("sample_plans")
    op.drop_index("ix_course_sub_units_unit_id", table_name="course_sub_units")
    op.drop_table("course_sub_units")
    op.drop_index("ix_course_units_course_id", table_name="course_units")
    op.drop_table("course_units")
    op.drop_table("courses")
    op.drop_table("users")
