from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class SubmissionStatus(StrEnum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, raw: str) -> SubmissionStatus:
        value = raw.strip().lower()
        # "submitted" is what some clients wrote for a finished attempt.
        if value == "submitted":
            return cls.COMPLETED
        return cls(value)


@dataclass(frozen=True, slots=True)
class AnswerSelection:
    """A user's current response to one question."""

    selected_option_id: str | None = None
    text_value: str | None = None

    @property
    def is_empty(self) -> bool:
        has_text = self.text_value is not None and self.text_value.strip() != ""
        return self.selected_option_id is None and not has_text


@dataclass(frozen=True, slots=True)
class Submission:
    id: str
    assessment_id: str
    assignment_id: str
    user_id: str
    status: SubmissionStatus = SubmissionStatus.IN_PROGRESS
    score: float | None = None
    max_score: float | None = None
    started_at: int | None = None
    completed_at: int | None = None

    @property
    def is_completed(self) -> bool:
        return self.status is SubmissionStatus.COMPLETED


@dataclass(frozen=True, slots=True)
class SubmittedAnswer:
    submission_id: str
    question_id: str
    answer_id: str | None = None
    text_answer: str | None = None
    score: float | None = None

    @property
    def selection(self) -> AnswerSelection:
        return AnswerSelection(
            selected_option_id=self.answer_id, text_value=self.text_answer
        )
