"""Completion fractions derived from the topic layout and answered ids.

Pure functions, safe to call on every request. A topic with no questions
is complete (``answered == total`` holds at 0) but reports 0 percent.
"""

from __future__ import annotations

from collections.abc import Container, Sequence
from dataclasses import dataclass

from assessment_service.models.assessment import Topic
from assessment_service.models.assignment import TopicStatus


def _percentage(answered: int, total: int) -> float:
    return answered / total * 100 if total > 0 else 0.0


@dataclass(frozen=True, slots=True)
class TopicProgress:
    topic_id: str
    answered: int
    total: int
    percentage: float

    @property
    def is_complete(self) -> bool:
        return self.answered == self.total

    @property
    def status(self) -> TopicStatus:
        if self.is_complete and self.total > 0:
            return TopicStatus.COMPLETED
        if self.answered == 0:
            return TopicStatus.NOT_STARTED
        return TopicStatus.IN_PROGRESS


@dataclass(frozen=True, slots=True)
class OverallProgress:
    completed: int
    total: int
    percentage: float
    completed_topics: int
    topic_count: int


def topic_progress(topic: Topic, answered_ids: Container[str]) -> TopicProgress:
    answered = sum(1 for q in topic.questions if q.id in answered_ids)
    total = topic.question_count
    return TopicProgress(
        topic_id=topic.id,
        answered=answered,
        total=total,
        percentage=_percentage(answered, total),
    )


def overall_progress(
    topics: Sequence[Topic], answered_ids: Container[str]
) -> OverallProgress:
    per_topic = [topic_progress(t, answered_ids) for t in topics]
    completed = sum(p.answered for p in per_topic)
    total = sum(p.total for p in per_topic)
    return OverallProgress(
        completed=completed,
        total=total,
        percentage=_percentage(completed, total),
        completed_topics=sum(1 for p in per_topic if p.is_complete),
        topic_count=len(per_topic),
    )


def incomplete_topic_ids(
    topics: Sequence[Topic], answered_ids: Container[str]
) -> list[str]:
    return [
        t.id for t in topics if not topic_progress(t, answered_ids).is_complete
    ]


def all_topics_completed(topics: Sequence[Topic], answered_ids: Container[str]) -> bool:
    return not incomplete_topic_ids(topics, answered_ids)
