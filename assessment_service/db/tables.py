"""SQLAlchemy table definitions.

One table per data-store collection. Identifiers are UUID strings
generated by the caller; ``seq`` is an identity column recording
insertion order, used as the final ordering tie-break. Timestamps are
integer epoch seconds.
"""

from __future__ import annotations

from sqlalchemy import (
    BigInteger,
    Boolean,
    Float,
    ForeignKey,
    Identity,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from assessment_service.db.engine import Base


def _id_column() -> Mapped[str]:
    return mapped_column(UUID(as_uuid=False), primary_key=True)


def _seq_column() -> Mapped[int]:
    return mapped_column(BigInteger, Identity(always=False), nullable=False)


def _fk(target: str, *, nullable: bool = False) -> Mapped:
    return mapped_column(
        UUID(as_uuid=False), ForeignKey(target), nullable=nullable, index=True
    )


class ProfileRow(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = _id_column()
    seq: Mapped[int] = _seq_column()
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    role: Mapped[str] = mapped_column(
        String(32), nullable=False, default="client"
    )  # admin|client
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[int | None] = mapped_column(Integer, nullable=True)


class AssessmentRow(Base):
    __tablename__ = "assessments"

    id: Mapped[str] = _id_column()
    seq: Mapped[int] = _seq_column()
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[str | None] = _fk("profiles.id", nullable=True)
    created_at: Mapped[int | None] = mapped_column(Integer, nullable=True)


class TopicRow(Base):
    __tablename__ = "topics"

    id: Mapped[str] = _id_column()
    seq: Mapped[int] = _seq_column()
    assessment_id: Mapped[str] = _fk("assessments.id")
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    sequence_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[str | None] = _fk("profiles.id", nullable=True)
    created_at: Mapped[int | None] = mapped_column(Integer, nullable=True)


class QuestionRow(Base):
    __tablename__ = "questions"

    id: Mapped[str] = _id_column()
    seq: Mapped[int] = _seq_column()
    topic_id: Mapped[str] = _fk("topics.id")
    question: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(
        String(32), nullable=False
    )  # multiple_choice|yes_no|free_text
    sequence_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[str | None] = _fk("profiles.id", nullable=True)
    created_at: Mapped[int | None] = mapped_column(Integer, nullable=True)


class AnswerOptionRow(Base):
    __tablename__ = "answers"

    id: Mapped[str] = _id_column()
    seq: Mapped[int] = _seq_column()
    question_id: Mapped[str] = _fk("questions.id")
    text: Mapped[str] = mapped_column(Text, nullable=False)
    is_correct: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    marks: Mapped[str | None] = mapped_column(String(32), nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[int | None] = mapped_column(Integer, nullable=True)


class AssignmentRow(Base):
    __tablename__ = "assessment_assignments"

    id: Mapped[str] = _id_column()
    seq: Mapped[int] = _seq_column()
    assessment_id: Mapped[str] = _fk("assessments.id")
    user_id: Mapped[str] = _fk("profiles.id")
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="assigned"
    )  # assigned|started|completed
    scope: Mapped[str] = mapped_column(Text, nullable=False, default="")
    assigned_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    due_date: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (UniqueConstraint("user_id", "assessment_id"),)


class SubmissionRow(Base):
    __tablename__ = "assessment_submissions"

    id: Mapped[str] = _id_column()
    seq: Mapped[int] = _seq_column()
    assessment_id: Mapped[str] = _fk("assessments.id")
    assignment_id: Mapped[str] = _fk("assessment_assignments.id")
    user_id: Mapped[str] = _fk("profiles.id")
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="in_progress"
    )  # in_progress|completed
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    started_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    completed_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[int | None] = mapped_column(Integer, nullable=True)


class TopicAssignmentRow(Base):
    __tablename__ = "topic_assignments"

    id: Mapped[str] = _id_column()
    seq: Mapped[int] = _seq_column()
    submission_id: Mapped[str] = _fk("assessment_submissions.id")
    topic_id: Mapped[str] = _fk("topics.id")
    assessment_assignment_id: Mapped[str] = _fk("assessment_assignments.id")
    user_id: Mapped[str] = _fk("profiles.id")
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="not_started"
    )  # not_started|in_progress|completed
    updated_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    completed_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (UniqueConstraint("submission_id", "topic_id"),)


class SubmittedAnswerRow(Base):
    __tablename__ = "submitted_answers"

    id: Mapped[str] = _id_column()
    seq: Mapped[int] = _seq_column()
    submission_id: Mapped[str] = _fk("assessment_submissions.id")
    question_id: Mapped[str] = _fk("questions.id")
    answer_id: Mapped[str | None] = _fk("answers.id", nullable=True)
    text_answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    updated_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (UniqueConstraint("submission_id", "question_id"),)
