"""Mark-based scoring for a submission.

Marks are stored as text on each answer option (authors type them into
a form), so every mark goes through ``parse_mark`` first. A mark that
does not parse as a number counts as missing.

PER-QUESTION RULES
------------------
  multiple_choice / yes_no
      score = mark of the selected option
      max   = highest mark among the question's options
      Either falls back to the flat mark when nothing parses or the
      selected option is not one of the question's options.

  free_text
      score = max = flat mark. Free text is not graded; answering it
      earns the flat mark.

TOTALS
------
Only answered questions contribute to ``score`` and ``max_score``.
Completion requires every question to be answered, so for a completed
submission the totals cover the whole assessment.

Example, a five-level confidence question with marks 1..5 where the
learner picked level 3:

  QuestionScore(question_id="q1", score=3.0, max_score=5.0)
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import assert_never

from assessment_service.models.assessment import Question, QuestionType, Topic
from assessment_service.models.submission import AnswerSelection

logger = logging.getLogger(__name__)


def parse_mark(raw: str | None) -> float | None:
    """Parse a stored mark ("3", " 2.5 ") into a number; None if unusable."""
    if raw is None:
        return None
    try:
        value = float(raw.strip())
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def question_max_mark(question: Question, flat_mark: float) -> float:
    match question.type:
        case QuestionType.MULTIPLE_CHOICE | QuestionType.YES_NO:
            marks = [
                m for o in question.options if (m := parse_mark(o.marks)) is not None
            ]
            return max(marks) if marks else flat_mark
        case QuestionType.FREE_TEXT:
            return flat_mark
        case _:
            assert_never(question.type)


def answer_mark(
    question: Question, selection: AnswerSelection, flat_mark: float
) -> float:
    match question.type:
        case QuestionType.MULTIPLE_CHOICE | QuestionType.YES_NO:
            option = question.option(selection.selected_option_id)
            if option is None:
                logger.warning(
                    "Selected option not found, using flat mark",
                    extra={"question_id": question.id},
                )
                return flat_mark
            mark = parse_mark(option.marks)
            return mark if mark is not None else flat_mark
        case QuestionType.FREE_TEXT:
            return flat_mark
        case _:
            assert_never(question.type)


@dataclass(frozen=True, slots=True)
class QuestionScore:
    question_id: str
    score: float
    max_score: float


@dataclass(frozen=True, slots=True)
class ScoreSheet:
    score: float
    max_score: float
    questions: tuple[QuestionScore, ...]

    def for_question(self, question_id: str) -> QuestionScore | None:
        return next((q for q in self.questions if q.question_id == question_id), None)


def score_answers(
    topics: Sequence[Topic],
    answers: Mapping[str, AnswerSelection],
    flat_mark: float,
) -> ScoreSheet:
    scored: list[QuestionScore] = []
    for topic in topics:
        for question in topic.questions:
            selection = answers.get(question.id)
            if selection is None or selection.is_empty:
                continue
            scored.append(
                QuestionScore(
                    question_id=question.id,
                    score=answer_mark(question, selection, flat_mark),
                    max_score=question_max_mark(question, flat_mark),
                )
            )
    return ScoreSheet(
        score=sum(q.score for q in scored),
        max_score=sum(q.max_score for q in scored),
        questions=tuple(scored),
    )
