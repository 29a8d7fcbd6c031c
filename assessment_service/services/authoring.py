"""Creating assessments, topics and questions, with input validation."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import assert_never

from assessment_service.models.assessment import QuestionType
from assessment_service.repos.data_store import Collection, DataStore, Record
from assessment_service.services.errors import NotFoundError, QuestionValidationError
from assessment_service.services.scoring import parse_mark

logger = logging.getLogger(__name__)

MIN_QUESTION_LENGTH = 5


@dataclass(frozen=True, slots=True)
class OptionDraft:
    text: str
    marks: str | None = None
    is_correct: bool | None = None
    comment: str | None = None


def default_options(qtype: QuestionType) -> list[OptionDraft]:
    """Starting option set for a new question of the given type."""
    match qtype:
        case QuestionType.YES_NO:
            return [
                OptionDraft("Yes", marks="1", is_correct=True),
                OptionDraft("No", marks="0", is_correct=False),
            ]
        case QuestionType.MULTIPLE_CHOICE:
            return [
                OptionDraft("Option 1", marks="1"),
                OptionDraft("Option 2", marks="0"),
            ]
        case QuestionType.FREE_TEXT:
            return [OptionDraft("Correct answer", marks="1")]
        case _:
            assert_never(qtype)


def validate_question(
    text: str, qtype: QuestionType, options: Sequence[OptionDraft]
) -> None:
    if len(text.strip()) < MIN_QUESTION_LENGTH:
        raise QuestionValidationError(
            f"question text must be at least {MIN_QUESTION_LENGTH} characters"
        )

    filled = [o for o in options if o.text.strip()]
    if qtype is QuestionType.MULTIPLE_CHOICE and len(filled) < 2:
        raise QuestionValidationError(
            "multiple choice questions need at least 2 options"
        )
    if qtype is QuestionType.YES_NO and len(filled) != 2:
        raise QuestionValidationError("yes/no questions need both options")

    marks = [o.marks for o in filled if o.marks is not None and o.marks.strip()]
    if any(parse_mark(m) is None for m in marks):
        raise QuestionValidationError("marks must be numbers")
    if qtype is QuestionType.FREE_TEXT:
        if not marks:
            raise QuestionValidationError("free text questions need a mark")
    elif marks and len(marks) != len(filled):
        raise QuestionValidationError("give marks for every option or for none")


async def add_assessment(
    store: DataStore,
    *,
    title: str,
    description: str = "",
    created_by: str | None = None,
) -> Record:
    if not title.strip():
        raise QuestionValidationError("assessment title must not be empty")
    record = await store.insert(
        Collection.ASSESSMENTS,
        {
            "title": title.strip(),
            "description": description,
            "is_active": True,
            "created_by": created_by,
        },
    )
    logger.info("Created assessment id=%s", record["id"])
    return record


async def add_topic(
    store: DataStore,
    *,
    assessment_id: str,
    title: str,
    description: str = "",
    sequence_number: int | None = None,
) -> Record:
    return await store.insert(
        Collection.TOPICS,
        {
            "assessment_id": assessment_id,
            "title": title,
            "description": description,
            "sequence_number": sequence_number,
            "is_active": True,
        },
    )


async def add_question(
    store: DataStore,
    *,
    topic_id: str,
    text: str,
    qtype: QuestionType,
    options: Sequence[OptionDraft] | None = None,
    sequence_number: int | None = None,
) -> Record:
    """Validate and store a question together with its answer options.

    With ``options=None`` the type's default option set is used. Blank
    options are dropped before they are stored.
    """
    drafts = list(options) if options is not None else default_options(qtype)
    validate_question(text, qtype, drafts)

    question = await store.insert(
        Collection.QUESTIONS,
        {
            "topic_id": topic_id,
            "question": text.strip(),
            "type": qtype.value,
            "sequence_number": sequence_number,
            "is_active": True,
        },
    )
    for draft in drafts:
        if not draft.text.strip():
            continue
        await store.insert(
            Collection.ANSWERS,
            {
                "question_id": question["id"],
                "text": draft.text.strip(),
                "marks": draft.marks.strip() if draft.marks else None,
                "is_correct": draft.is_correct,
                "comment": draft.comment,
            },
        )
    logger.info(
        "Created %s question with %d option(s)",
        qtype.value,
        len(drafts),
        extra={"question_id": question["id"]},
    )
    return question


async def get_topic(store: DataStore, *, assessment_id: str, topic_id: str) -> Record:
    """Return the topic, raising NotFoundError unless it belongs to the assessment."""
    record = await store.query_one(
        Collection.TOPICS, {"id": topic_id, "assessment_id": assessment_id}
    )
    if record is None:
        raise NotFoundError("topic not found")
    return record
