"""create assessment tables

Revision ID: 3b7e91c2d4a0
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b7e91c2d4a0"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _id() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True)


def _seq() -> sa.Column:
    return sa.Column("seq", sa.BigInteger(), sa.Identity(always=False), nullable=False)


def _fk(name: str, target: str, *, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name, postgresql.UUID(as_uuid=False), sa.ForeignKey(target), nullable=nullable
    )


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.Integer(), nullable=True)


def upgrade() -> None:
    op.create_table(
        "profiles",
        _id(),
        _seq(),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column(
            "first_name", sa.String(length=255), nullable=False, server_default=""
        ),
        sa.Column(
            "last_name", sa.String(length=255), nullable=False, server_default=""
        ),
        sa.Column(
            "role", sa.String(length=32), nullable=False, server_default="client"
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
    )
    op.create_table(
        "assessments",
        _id(),
        _seq(),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _fk("created_by", "profiles.id", nullable=True),
        _created_at(),
    )
    op.create_table(
        "topics",
        _id(),
        _seq(),
        _fk("assessment_id", "assessments.id"),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("sequence_number", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _fk("created_by", "profiles.id", nullable=True),
        _created_at(),
    )
    op.create_table(
        "questions",
        _id(),
        _seq(),
        _fk("topic_id", "topics.id"),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("sequence_number", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _fk("created_by", "profiles.id", nullable=True),
        _created_at(),
    )
    op.create_table(
        "answers",
        _id(),
        _seq(),
        _fk("question_id", "questions.id"),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=True),
        sa.Column("marks", sa.String(length=32), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_table(
        "assessment_assignments",
        _id(),
        _seq(),
        _fk("assessment_id", "assessments.id"),
        _fk("user_id", "profiles.id"),
        sa.Column(
            "status", sa.String(length=32), nullable=False, server_default="assigned"
        ),
        sa.Column("scope", sa.Text(), nullable=False, server_default=""),
        sa.Column("assigned_at", sa.Integer(), nullable=True),
        sa.Column("due_date", sa.Integer(), nullable=True),
        _created_at(),
        sa.UniqueConstraint("user_id", "assessment_id"),
    )
    op.create_table(
        "assessment_submissions",
        _id(),
        _seq(),
        _fk("assessment_id", "assessments.id"),
        _fk("assignment_id", "assessment_assignments.id"),
        _fk("user_id", "profiles.id"),
        sa.Column(
            "status", sa.String(length=32), nullable=False, server_default="in_progress"
        ),
        sa.Column("score", sa.Float(), nullable=True),
        sa.Column("max_score", sa.Float(), nullable=True),
        sa.Column("started_at", sa.Integer(), nullable=True),
        sa.Column("completed_at", sa.Integer(), nullable=True),
        _created_at(),
    )
    op.create_table(
        "topic_assignments",
        _id(),
        _seq(),
        _fk("submission_id", "assessment_submissions.id"),
        _fk("topic_id", "topics.id"),
        _fk("assessment_assignment_id", "assessment_assignments.id"),
        _fk("user_id", "profiles.id"),
        sa.Column(
            "status", sa.String(length=32), nullable=False, server_default="not_started"
        ),
        sa.Column("updated_at", sa.Integer(), nullable=True),
        sa.Column("completed_at", sa.Integer(), nullable=True),
        _created_at(),
        sa.UniqueConstraint("submission_id", "topic_id"),
    )
    op.create_table(
        "submitted_answers",
        _id(),
        _seq(),
        _fk("submission_id", "assessment_submissions.id"),
        _fk("question_id", "questions.id"),
        _fk("answer_id", "answers.id", nullable=True),
        sa.Column("text_answer", sa.Text(), nullable=True),
        sa.Column("score", sa.Float(), nullable=True),
        sa.Column("updated_at", sa.Integer(), nullable=True),
        _created_at(),
        sa.UniqueConstraint("submission_id", "question_id"),
    )

    for table, column in [
        ("topics", "assessment_id"),
        ("questions", "topic_id"),
        ("answers", "question_id"),
        ("assessment_assignments", "user_id"),
        ("assessment_submissions", "assignment_id"),
        ("assessment_submissions", "user_id"),
        ("topic_assignments", "submission_id"),
        ("submitted_answers", "submission_id"),
    ]:
        op.create_index(f"ix_{table}_{column}", table, [column])


def downgrade() -> None:
    for table in [
        "submitted_answers",
        "topic_assignments",
        "assessment_submissions",
        "assessment_assignments",
        "answers",
        "questions",
        "topics",
        "assessments",
        "profiles",
    ]:
        op.drop_table(table)
