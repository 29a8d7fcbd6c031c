from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class QuestionType(StrEnum):
    MULTIPLE_CHOICE = "multiple_choice"
    YES_NO = "yes_no"
    FREE_TEXT = "free_text"

    @property
    def has_options(self) -> bool:
        return self is not QuestionType.FREE_TEXT


@dataclass(frozen=True, slots=True)
class Assessment:
    id: str
    title: str
    description: str = ""
    is_active: bool = True
    created_by: str | None = None


@dataclass(frozen=True, slots=True)
class AnswerOption:
    id: str
    question_id: str
    text: str
    marks: str | None = None  # stored as text, parsed at scoring time
    is_correct: bool | None = None  # None means "unscored"
    comment: str | None = None


@dataclass(frozen=True, slots=True)
class Question:
    id: str
    topic_id: str
    text: str
    type: QuestionType
    sequence_number: int | None = None
    options: tuple[AnswerOption, ...] = ()

    def option(self, option_id: str | None) -> AnswerOption | None:
        if option_id is None:
            return None
        return next((o for o in self.options if o.id == option_id), None)


@dataclass(frozen=True, slots=True)
class Topic:
    id: str
    assessment_id: str
    title: str
    description: str = ""
    sequence_number: int | None = None
    questions: tuple[Question, ...] = ()

    @property
    def question_count(self) -> int:
        return len(self.questions)
