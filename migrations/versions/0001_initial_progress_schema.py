"""initial progress schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17 10:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name, nullable=True, server_default=None):
    return sa.Column(
        name, sa.DateTime(timezone=True), nullable=nullable, server_default=server_default
    )


def upgrade() -> None:
    # Catalog
    op.create_table(
        "courses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False, index=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("passing_score", sa.Integer(), nullable=True),
        sa.Column("require_sequential_completion", sa.Boolean(), nullable=False),
        _timestamp("created_at", False, sa.func.now()),
        _timestamp("updated_at", False, sa.func.now()),
    )
    op.create_table(
        "modules",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "course_id", sa.String(36), sa.ForeignKey("courses.id"), nullable=False, index=True
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("is_required", sa.Boolean(), nullable=False),
        sa.Column("passing_score", sa.Integer(), nullable=False),
        sa.Column(
            "prerequisite_module_id", sa.String(36), sa.ForeignKey("modules.id"), nullable=True
        ),
        _timestamp("created_at", False, sa.func.now()),
    )
    op.create_table(
        "topics",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "module_id", sa.String(36), sa.ForeignKey("modules.id"), nullable=False, index=True
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("is_required", sa.Boolean(), nullable=False),
        sa.Column("allow_skip", sa.Boolean(), nullable=False),
        sa.Column("passing_score", sa.Integer(), nullable=False),
        sa.Column("max_attempts", sa.Integer(), nullable=True),
        sa.Column(
            "prerequisite_topic_id", sa.String(36), sa.ForeignKey("topics.id"), nullable=True
        ),
        _timestamp("created_at", False, sa.func.now()),
    )
    op.create_table(
        "quizzes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "topic_id", sa.String(36), sa.ForeignKey("topics.id"), nullable=False, index=True
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("passing_score", sa.Integer(), nullable=False),
        sa.Column("max_attempts", sa.Integer(), nullable=True),
        sa.Column("shuffle_questions", sa.Boolean(), nullable=False),
        sa.Column("shuffle_options", sa.Boolean(), nullable=False),
        sa.Column("allow_partial_credit", sa.Boolean(), nullable=False),
        _timestamp("created_at", False, sa.func.now()),
    )
    op.create_table(
        "questions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "quiz_id", sa.String(36), sa.ForeignKey("quizzes.id"), nullable=False, index=True
        ),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("question_type", sa.String(20), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("allow_partial_credit", sa.Boolean(), nullable=True),
        sa.Column("case_sensitive", sa.Boolean(), nullable=False),
    )
    op.create_table(
        "question_options",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "question_id",
            sa.String(36),
            sa.ForeignKey("questions.id"),
            nullable=False,
            index=True,
        ),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
    )

    # Progress
    op.create_table(
        "course_enrollments",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("user_id", sa.String(64), nullable=False, index=True),
        sa.Column(
            "course_id", sa.String(36), sa.ForeignKey("courses.id"), nullable=False, index=True
        ),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("overall_progress", sa.Integer(), nullable=False),
        sa.Column("final_grade", sa.Integer(), nullable=True),
        _timestamp("enrolled_at", False, sa.func.now()),
        _timestamp("last_access_at"),
        _timestamp("completed_at"),
        sa.UniqueConstraint("user_id", "course_id", name="uq_enrollment_user_course"),
    )
    op.create_table(
        "module_progress",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("user_id", sa.String(64), nullable=False, index=True),
        sa.Column(
            "module_id", sa.String(36), sa.ForeignKey("modules.id"), nullable=False, index=True
        ),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("progress_percentage", sa.Integer(), nullable=False),
        sa.Column("current_score", sa.Integer(), nullable=True),
        sa.Column("best_score", sa.Integer(), nullable=True),
        _timestamp("started_at"),
        _timestamp("completed_at"),
        sa.UniqueConstraint("user_id", "module_id", name="uq_module_progress_user_module"),
    )
    op.create_table(
        "topic_progress",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("user_id", sa.String(64), nullable=False, index=True),
        sa.Column(
            "topic_id", sa.String(36), sa.ForeignKey("topics.id"), nullable=False, index=True
        ),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("best_score", sa.Integer(), nullable=True),
        sa.Column("mastery_achieved", sa.Boolean(), nullable=False),
        sa.Column("completion_rate", sa.Integer(), nullable=False),
        sa.Column("view_count", sa.Integer(), nullable=False),
        sa.Column("attempt_count", sa.Integer(), nullable=False),
        _timestamp("started_at"),
        _timestamp("last_access_at"),
        _timestamp("completed_at"),
        sa.UniqueConstraint("user_id", "topic_id", name="uq_topic_progress_user_topic"),
    )
    op.create_table(
        "quiz_attempts",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("user_id", sa.String(64), nullable=False, index=True),
        sa.Column(
            "quiz_id", sa.String(36), sa.ForeignKey("quizzes.id"), nullable=False, index=True
        ),
        sa.Column(
            "topic_id", sa.String(36), sa.ForeignKey("topics.id"), nullable=True, index=True
        ),
        sa.Column("attempt_number", sa.Integer(), nullable=False),
        sa.Column(
            "answers",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=True,
        ),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("passed", sa.Boolean(), nullable=False),
        sa.Column("earned_points", sa.Integer(), nullable=False),
        sa.Column("total_points", sa.Integer(), nullable=False),
        sa.Column("questions_correct", sa.Integer(), nullable=False),
        sa.Column("questions_total", sa.Integer(), nullable=False),
        sa.Column("questions_skipped", sa.Integer(), nullable=False),
        sa.Column("is_practice", sa.Boolean(), nullable=False),
        sa.Column("time_spent", sa.Integer(), nullable=False),
        _timestamp("completed_at", False),
        _timestamp("created_at", False, sa.func.now()),
        sa.UniqueConstraint(
            "user_id", "quiz_id", "attempt_number", name="uq_quiz_attempt_sequence"
        ),
    )
    op.create_table(
        "certificates",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("user_id", sa.String(64), nullable=False, index=True),
        sa.Column(
            "course_id", sa.String(36), sa.ForeignKey("courses.id"), nullable=False, index=True
        ),
        sa.Column("certificate_number", sa.String(64), nullable=False, unique=True),
        sa.Column("final_grade", sa.Integer(), nullable=True),
        _timestamp("issued_at", False),
        sa.UniqueConstraint("user_id", "course_id", name="uq_certificate_user_course"),
    )


def downgrade() -> None:
    for table in (
        "certificates",
        "quiz_attempts",
        "topic_progress",
        "module_progress",
        "course_enrollments",
        "question_options",
        "questions",
        "quizzes",
        "topics",
        "modules",
        "courses",
    ):
        op.drop_table(table)
