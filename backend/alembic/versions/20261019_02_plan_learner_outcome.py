"""Add sampling outcome fields to sample plan learners."""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_02"
down_revision: str | Sequence[str] | None = "20261019_01"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("sample_plan_learners", sa.Column("completed_date", sa.Date(), nullable=True))
    op.add_column("sample_plan_learners", sa.Column("iqa_conclusion", sa.JSON(), nullable=True))
    op.add_column("sample_plan_learners", sa.Column("assessor_decision_correct", sa.Boolean(), nullable=True))
    op.add_column("sample_plan_learners", sa.Column("feedback", sa.Text(), nullable=True))


def downgrade() -> None:
    op.drop_column("sample_plan_learners", "feedback")
    op.drop_column("sample_plan_learners", "assessor_decision_correct")
    op.drop_column("sample_plan_learners", "iqa_conclusion")
    op.drop_column("sample_plan_learners", "completed_date")
