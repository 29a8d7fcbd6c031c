from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class AssignmentStatus(StrEnum):
    ASSIGNED = "assigned"
    STARTED = "started"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, raw: str) -> AssignmentStatus:
        # Older rows were written upper-case (ASSIGNED, STARTED, COMPLETED).
        return cls(raw.strip().lower())


class TopicStatus(StrEnum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class Assignment:
    id: str
    assessment_id: str
    user_id: str
    status: AssignmentStatus = AssignmentStatus.ASSIGNED
    scope: str = ""
    assigned_at: int | None = None
    due_date: int | None = None


@dataclass(frozen=True, slots=True)
class TopicAssignment:
    """Per-topic progress marker so overview screens don't recount answers."""

    submission_id: str
    topic_id: str
    assessment_assignment_id: str
    user_id: str
    status: TopicStatus = TopicStatus.NOT_STARTED
    updated_at: int | None = None
    completed_at: int | None = None
