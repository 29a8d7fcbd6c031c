"""Loads an assessment's topic/question/option tree from the data store.

Ordering: topics and questions by ``sequence_number`` (nulls last), ties
by insertion order; options by ascending parsed mark, then insertion
order. Inactive topics and questions are skipped, and so are questions
whose type tag is not recognised.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Mapping
from typing import Any

from assessment_service.models.assessment import (
    AnswerOption,
    Assessment,
    Question,
    QuestionType,
    Topic,
)
from assessment_service.repos.data_store import Collection, DataStore, DataStoreError
from assessment_service.services.errors import DataLoadError, NotFoundError
from assessment_service.services.scoring import parse_mark

logger = logging.getLogger(__name__)


def assessment_from_record(record: Mapping[str, Any]) -> Assessment:
    return Assessment(
        id=record["id"],
        title=record["title"],
        description=record.get("description") or "",
        is_active=record.get("is_active", True),
        created_by=record.get("created_by"),
    )


def _option_from_record(record: Mapping[str, Any]) -> AnswerOption:
    return AnswerOption(
        id=record["id"],
        question_id=record["question_id"],
        text=record["text"],
        marks=record.get("marks"),
        is_correct=record.get("is_correct"),
        comment=record.get("comment"),
    )


def _option_order(option: AnswerOption) -> tuple[bool, float]:
    mark = parse_mark(option.marks)
    return (mark is None, mark if mark is not None else 0.0)


async def load_assessment(store: DataStore, assessment_id: str) -> Assessment:
    try:
        record = await store.query_one(Collection.ASSESSMENTS, {"id": assessment_id})
    except DataStoreError as e:
        logger.warning("Failed to load assessment=%s: %s", assessment_id, e)
        raise DataLoadError("failed to load assessment") from e
    if record is None:
        raise NotFoundError("assessment not found")
    return assessment_from_record(record)


async def load_topics(store: DataStore, assessment_id: str) -> tuple[Topic, ...]:
    """Fetch active topics with their questions and options, fully ordered.

    Raises DataLoadError if any of the three queries fails; a partial
    tree is never returned.
    """
    try:
        topic_records = await store.query_ordered(
            Collection.TOPICS,
            {"assessment_id": assessment_id, "is_active": True},
            order_by=("sequence_number",),
        )
        topic_ids = [t["id"] for t in topic_records]
        question_records = (
            await store.query_ordered(
                Collection.QUESTIONS,
                {"topic_id": topic_ids, "is_active": True},
                order_by=("sequence_number",),
            )
            if topic_ids
            else []
        )
        question_ids = [q["id"] for q in question_records]
        option_records = (
            await store.query_ordered(
                Collection.ANSWERS, {"question_id": question_ids}
            )
            if question_ids
            else []
        )
    except DataStoreError as e:
        logger.warning("Failed to load topics for assessment=%s: %s", assessment_id, e)
        raise DataLoadError("failed to load assessment topics") from e

    options_by_question: dict[str, list[AnswerOption]] = defaultdict(list)
    for record in option_records:
        option = _option_from_record(record)
        options_by_question[option.question_id].append(option)

    questions_by_topic: dict[str, list[Question]] = defaultdict(list)
    for record in question_records:
        try:
            qtype = QuestionType(record["type"])
        except ValueError:
            logger.warning(
                "Skipping question with unknown type=%r",
                record.get("type"),
                extra={"question_id": record["id"]},
            )
            continue
        options = (
            tuple(sorted(options_by_question[record["id"]], key=_option_order))
            if qtype.has_options
            else ()
        )
        questions_by_topic[record["topic_id"]].append(
            Question(
                id=record["id"],
                topic_id=record["topic_id"],
                text=record["question"],
                type=qtype,
                sequence_number=record.get("sequence_number"),
                options=options,
            )
        )

    return tuple(
        Topic(
            id=record["id"],
            assessment_id=record["assessment_id"],
            title=record["title"],
            description=record.get("description") or "",
            sequence_number=record.get("sequence_number"),
            questions=tuple(questions_by_topic[record["id"]]),
        )
        for record in topic_records
    )
