"""Assessment-taking flow.

Navigation is an explicit state machine: ``transition(state, event,
question_counts)`` is pure and knows nothing about persistence.

``AssessmentFlowController`` wraps it for one user's attempt at one
assignment. It owns the answer state, writes each answer to the data
store as it is recorded, keeps per-topic progress markers current, and
runs the completion sequence:

    save answer scores -> complete submission -> complete assignment

Each completion step is an independent write. A failed step raises
CompletionError and stops the sequence without undoing earlier steps;
re-running completion is safe because every step is an upsert or an
idempotent status update.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any, TypeVar, assert_never

from assessment_service.core.config import SETTINGS, Settings
from assessment_service.core.metrics import (
    ANSWER_SYNC_FAILURES,
    ANSWERS_RECORDED,
    COMPLETIONS,
)
from assessment_service.models.assessment import Assessment, Question, Topic
from assessment_service.models.assignment import Assignment, AssignmentStatus
from assessment_service.models.submission import (
    AnswerSelection,
    Submission,
    SubmissionStatus,
    SubmittedAnswer,
)
from assessment_service.repos.data_store import Collection, DataStore, DataStoreError
from assessment_service.services.answer_store import AnswerStateStore
from assessment_service.services.assignments import get_assignment
from assessment_service.services.catalog import load_assessment, load_topics
from assessment_service.services.errors import (
    AnswerRejectedError,
    AnswerSyncWarning,
    CompletionError,
    DataLoadError,
    IncompleteAssessmentError,
    InvalidNavigationError,
)
from assessment_service.services.progress import (
    OverallProgress,
    TopicProgress,
    incomplete_topic_ids,
    overall_progress,
    topic_progress,
)
from assessment_service.services.scoring import ScoreSheet, score_answers

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# States and events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TopicsOverview:
    pass


@dataclass(frozen=True, slots=True)
class Answering:
    topic_index: int
    question_index: int


@dataclass(frozen=True, slots=True)
class Completed:
    pass


FlowState = TopicsOverview | Answering | Completed


@dataclass(frozen=True, slots=True)
class SelectTopic:
    index: int


@dataclass(frozen=True, slots=True)
class Next:
    pass


@dataclass(frozen=True, slots=True)
class Previous:
    pass


@dataclass(frozen=True, slots=True)
class BackToTopics:
    pass


@dataclass(frozen=True, slots=True)
class Complete:
    pass


FlowEvent = SelectTopic | Next | Previous | BackToTopics | Complete


def transition(
    state: FlowState,
    event: FlowEvent,
    question_counts: Sequence[int],
    *,
    all_complete: bool = False,
) -> FlowState:
    """Return the state after ``event``; an unchanged state means no-op.

    ``question_counts[i]`` is the number of questions in topic ``i``.
    ``Complete`` only moves TopicsOverview to Completed, and only when
    ``all_complete`` is true. Completed is terminal.
    """
    if isinstance(state, Completed):
        return state

    match event:
        case SelectTopic(index=index):
            if not 0 <= index < len(question_counts):
                raise InvalidNavigationError(f"no topic at index {index}")
            return Answering(index, 0)

        case Next():
            if not isinstance(state, Answering):
                return state
            t, q = state.topic_index, state.question_index
            if q + 1 < question_counts[t]:
                return Answering(t, q + 1)
            if t + 1 < len(question_counts):
                return Answering(t + 1, 0)
            return state

        case Previous():
            if not isinstance(state, Answering):
                return state
            t, q = state.topic_index, state.question_index
            if q > 0:
                return Answering(t, q - 1)
            if t > 0:
                return Answering(t - 1, max(question_counts[t - 1] - 1, 0))
            return state

        case BackToTopics():
            return TopicsOverview()

        case Complete():
            if isinstance(state, TopicsOverview) and all_complete:
                return Completed()
            return state

        case _:
            assert_never(event)


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FlowSession:
    """Who is taking what. Passed in explicitly, never looked up."""

    user_id: str
    assignment_id: str


@dataclass(frozen=True, slots=True)
class CompletionResult:
    submission_id: str
    score: float
    max_score: float


def submission_from_record(record: Mapping[str, Any]) -> Submission:
    return Submission(
        id=record["id"],
        assessment_id=record["assessment_id"],
        assignment_id=record["assignment_id"],
        user_id=record["user_id"],
        status=SubmissionStatus.parse(record.get("status") or "in_progress"),
        score=record.get("score"),
        max_score=record.get("max_score"),
        started_at=record.get("started_at"),
        completed_at=record.get("completed_at"),
    )


def submitted_answer_from_record(record: Mapping[str, Any]) -> SubmittedAnswer:
    return SubmittedAnswer(
        submission_id=record["submission_id"],
        question_id=record["question_id"],
        answer_id=record.get("answer_id"),
        text_answer=record.get("text_answer"),
        score=record.get("score"),
    )


class AssessmentFlowController:
    def __init__(
        self,
        *,
        store: DataStore,
        session: FlowSession,
        assignment: Assignment,
        assessment: Assessment,
        topics: Sequence[Topic],
        submission: Submission | None = None,
        answers: AnswerStateStore | None = None,
        flat_mark: float = 1,
        sync_max_attempts: int = 3,
        sync_backoff_seconds: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._session = session
        self._assignment = assignment
        self._assessment = assessment
        self._topics = tuple(topics)
        self._submission = submission
        self._answers = answers if answers is not None else AnswerStateStore()
        self._flat_mark = flat_mark
        self._sync_max_attempts = sync_max_attempts
        self._sync_backoff_seconds = sync_backoff_seconds
        self._sleep = sleep
        self._clock = clock

        self._question_counts = tuple(t.question_count for t in self._topics)
        self._questions: dict[str, Question] = {}
        self._topic_of: dict[str, Topic] = {}
        for topic in self._topics:
            for question in topic.questions:
                self._questions[question.id] = question
                self._topic_of[question.id] = topic

        # Cleared by close(); replies that arrive afterwards are dropped.
        self._live = True
        self._result: CompletionResult | None = None
        self._state: FlowState = TopicsOverview()
        if submission is not None and submission.is_completed:
            self._state = Completed()
            self._result = CompletionResult(
                submission_id=submission.id,
                score=submission.score or 0.0,
                max_score=submission.max_score or 0.0,
            )

    @classmethod
    async def open(
        cls,
        store: DataStore,
        session: FlowSession,
        *,
        topic_index: int | None = None,
        settings: Settings = SETTINGS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> AssessmentFlowController:
        """Load everything needed to resume the session's assignment.

        Restores recorded answers from the latest submission, so a
        reload picks up where the user left off. With ``topic_index``
        the flow starts inside that topic instead of on the overview.
        """
        assignment = await get_assignment(
            store, session.assignment_id, user_id=session.user_id
        )
        assessment = await load_assessment(store, assignment.assessment_id)
        topics = await load_topics(store, assessment.id)

        try:
            submission_records = await store.query_ordered(
                Collection.SUBMISSIONS,
                {"assessment_id": assessment.id, "user_id": session.user_id},
                order_by=("started_at",),
            )
            submission = (
                submission_from_record(submission_records[-1])
                if submission_records
                else None
            )
            answer_records = (
                await store.query_ordered(
                    Collection.SUBMITTED_ANSWERS, {"submission_id": submission.id}
                )
                if submission is not None
                else []
            )
        except DataStoreError as e:
            logger.warning(
                "Failed to load submission: %s",
                e,
                extra={"assignment_id": assignment.id},
            )
            raise DataLoadError("failed to load submission") from e

        answers = AnswerStateStore.from_submitted(
            submitted_answer_from_record(r) for r in answer_records
        )
        controller = cls(
            store=store,
            session=session,
            assignment=assignment,
            assessment=assessment,
            topics=topics,
            submission=submission,
            answers=answers,
            flat_mark=settings.free_text_mark,
            sync_max_attempts=settings.sync_max_attempts,
            sync_backoff_seconds=settings.sync_backoff_seconds,
            sleep=sleep,
        )
        logger.info(
            "Opened flow topics=%d restored_answers=%d completed=%s",
            len(topics),
            len(answers),
            controller.is_completed,
            extra=controller._log_extra(),
        )
        if topic_index is not None and not controller.is_completed:
            controller.select_topic(topic_index)
        return controller

    # ---- read-only views ----

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def is_completed(self) -> bool:
        return self._result is not None

    @property
    def assessment(self) -> Assessment:
        return self._assessment

    @property
    def assignment(self) -> Assignment:
        return self._assignment

    @property
    def submission(self) -> Submission | None:
        return self._submission

    @property
    def topics(self) -> tuple[Topic, ...]:
        return self._topics

    @property
    def answers(self) -> AnswerStateStore:
        return self._answers

    @property
    def result(self) -> CompletionResult | None:
        return self._result

    @property
    def current_question(self) -> Question | None:
        if not isinstance(self._state, Answering):
            return None
        topic = self._topics[self._state.topic_index]
        if self._state.question_index >= topic.question_count:
            return None
        return topic.questions[self._state.question_index]

    def recorded_answer(self, question_id: str) -> AnswerSelection | None:
        return self._answers.get(question_id)

    def topic_progress(self, topic_index: int) -> TopicProgress:
        return topic_progress(self._topics[topic_index], self._answers)

    def progress(self) -> OverallProgress:
        return overall_progress(self._topics, self._answers)

    def all_topics_completed(self) -> bool:
        return not incomplete_topic_ids(self._topics, self._answers)

    # ---- navigation ----

    def _dispatch(self, event: FlowEvent) -> FlowState:
        self._state = transition(
            self._state,
            event,
            self._question_counts,
            all_complete=self.all_topics_completed(),
        )
        return self._state

    def select_topic(self, index: int) -> FlowState:
        return self._dispatch(SelectTopic(index))

    def next(self) -> FlowState:
        return self._dispatch(Next())

    def previous(self) -> FlowState:
        return self._dispatch(Previous())

    def back_to_topics(self) -> FlowState:
        return self._dispatch(BackToTopics())

    def close(self) -> None:
        self._live = False

    # ---- answers ----

    async def record_answer(
        self, question_id: str, selection: AnswerSelection
    ) -> AnswerSyncWarning | None:
        """Store the answer locally and write it through to the data store.

        A failed remote write does not raise: the answer stays in local
        state, marked dirty for sync_pending(), and a warning is returned.
        """
        if self.is_completed:
            raise AnswerRejectedError("assessment already completed")
        question = self._questions.get(question_id)
        if question is None:
            raise AnswerRejectedError("question is not part of this assessment")
        if selection.is_empty:
            raise AnswerRejectedError("answer must not be empty")

        version = self._answers.set(question_id, selection)
        ANSWERS_RECORDED.labels(question_type=question.type.value).inc()

        try:
            await self._persist_answer(question_id, version)
        except DataStoreError as e:
            ANSWER_SYNC_FAILURES.inc()
            logger.warning(
                "Answer kept locally, remote write failed: %s",
                e,
                extra=self._log_extra(question_id),
            )
            return AnswerSyncWarning(
                question_id=question_id,
                message="answer saved locally but not synced",
            )
        return None

    async def sync_pending(self) -> list[str]:
        """Re-send dirty answers with exponential backoff.

        Returns the ids still unsynced after the last attempt.
        """
        for attempt in range(self._sync_max_attempts):
            pending = self._answers.dirty_ids()
            if not pending or not self._live:
                return pending
            if attempt:
                await self._sleep(self._sync_backoff_seconds * 2 ** (attempt - 1))
            for question_id in pending:
                version = self._answers.version(question_id)
                if version is None:
                    continue
                try:
                    await self._persist_answer(question_id, version)
                except DataStoreError as e:
                    logger.warning(
                        "Sync attempt %d failed: %s",
                        attempt + 1,
                        e,
                        extra=self._log_extra(question_id),
                    )

        remaining = self._answers.dirty_ids()
        if remaining:
            logger.warning(
                "%d answer(s) still unsynced after %d attempt(s)",
                len(remaining),
                self._sync_max_attempts,
                extra=self._log_extra(),
            )
        return remaining

    # ---- completion ----

    async def complete_assessment(self) -> CompletionResult:
        """Score the attempt and mark submission and assignment completed.

        Raises IncompleteAssessmentError (no state change) while any topic
        has unanswered questions. Calling again after success returns the
        first result without touching the data store, unless the earlier
        run stopped before the assignment was marked completed; then only
        that last step is repeated.
        """
        if self._result is not None:
            if self._assignment.status is not AssignmentStatus.COMPLETED:
                # An earlier run stopped after the submission was completed.
                try:
                    await self._step("complete_assignment", self._complete_assignment)
                except CompletionError:
                    COMPLETIONS.labels(outcome="failed").inc()
                    raise
                logger.info(
                    "Finished interrupted completion", extra=self._log_extra()
                )
                return self._result
            COMPLETIONS.labels(outcome="already_completed").inc()
            logger.info("Completion already done, ignoring", extra=self._log_extra())
            return self._result

        missing = incomplete_topic_ids(self._topics, self._answers)
        if missing:
            COMPLETIONS.labels(outcome="incomplete").inc()
            logger.warning(
                "Rejected completion: %d incomplete topic(s)",
                len(missing),
                extra=self._log_extra(),
            )
            raise IncompleteAssessmentError(missing)

        try:
            submission = await self._step(
                "create_submission", self._ensure_submission
            )
            sheet = score_answers(
                self._topics, self._answers.as_dict(), self._flat_mark
            )
            await self._step(
                "save_answer_scores", lambda: self._save_scores(submission.id, sheet)
            )
            completed_at = int(self._clock())
            await self._step(
                "complete_submission",
                lambda: self._store.update(
                    Collection.SUBMISSIONS,
                    submission.id,
                    {
                        "status": SubmissionStatus.COMPLETED.value,
                        "score": sheet.score,
                        "max_score": sheet.max_score,
                        "completed_at": completed_at,
                    },
                ),
            )
            await self._step("complete_assignment", self._complete_assignment)
        except CompletionError:
            COMPLETIONS.labels(outcome="failed").inc()
            raise

        result = CompletionResult(
            submission_id=submission.id, score=sheet.score, max_score=sheet.max_score
        )
        if not self._live:
            logger.debug("Controller closed, dropping completion state")
            return result

        self._submission = replace(
            submission,
            status=SubmissionStatus.COMPLETED,
            score=sheet.score,
            max_score=sheet.max_score,
            completed_at=completed_at,
        )
        self._result = result
        self._dispatch(BackToTopics())
        self._dispatch(Complete())
        COMPLETIONS.labels(outcome="completed").inc()
        logger.info(
            "Assessment completed score=%s max_score=%s",
            sheet.score,
            sheet.max_score,
            extra=self._log_extra(),
        )
        return result

    # ---- persistence helpers ----

    async def _step(self, name: str, action: Callable[[], Awaitable[T]]) -> T:
        try:
            return await action()
        except DataStoreError as e:
            logger.error(
                "Completion step %s failed: %s", name, e, extra=self._log_extra()
            )
            raise CompletionError(name) from e

    async def _complete_assignment(self) -> None:
        await self._store.update(
            Collection.ASSIGNMENTS,
            self._assignment.id,
            {"status": AssignmentStatus.COMPLETED.value},
        )
        if self._live:
            self._assignment = replace(
                self._assignment, status=AssignmentStatus.COMPLETED
            )

    async def _ensure_submission(self) -> Submission:
        """Return the current submission, creating it on first use."""
        if self._submission is not None:
            return self._submission

        record = await self._store.insert(
            Collection.SUBMISSIONS,
            {
                "assessment_id": self._assessment.id,
                "assignment_id": self._assignment.id,
                "user_id": self._session.user_id,
                "status": SubmissionStatus.IN_PROGRESS.value,
                "score": None,
                "max_score": None,
                "started_at": int(self._clock()),
                "completed_at": None,
            },
        )
        submission = submission_from_record(record)
        if self._live:
            self._submission = submission
        logger.info(
            "Created submission", extra=self._log_extra(submission_id=submission.id)
        )

        if self._assignment.status is AssignmentStatus.ASSIGNED:
            await self._store.update(
                Collection.ASSIGNMENTS,
                self._assignment.id,
                {"status": AssignmentStatus.STARTED.value},
            )
            if self._live:
                self._assignment = replace(
                    self._assignment, status=AssignmentStatus.STARTED
                )
        return submission

    def _answer_record(
        self, submission_id: str, question_id: str, selection: AnswerSelection
    ) -> dict[str, Any]:
        return {
            "submission_id": submission_id,
            "question_id": question_id,
            "answer_id": selection.selected_option_id,
            "text_answer": selection.text_value,
            "updated_at": int(self._clock()),
        }

    async def _persist_answer(self, question_id: str, version: int) -> None:
        selection = self._answers.get(question_id)
        if selection is None:
            return
        submission = await self._ensure_submission()
        await self._store.upsert(
            Collection.SUBMITTED_ANSWERS,
            self._answer_record(submission.id, question_id, selection),
            conflict_keys=("submission_id", "question_id"),
        )
        if not self._live:
            logger.debug("Controller closed, ignoring late answer ack")
            return
        self._answers.mark_synced(question_id, version)
        await self._update_topic_marker(submission.id, self._topic_of[question_id])

    async def _update_topic_marker(self, submission_id: str, topic: Topic) -> None:
        progress = topic_progress(topic, self._answers)
        now = int(self._clock())
        try:
            await self._store.upsert(
                Collection.TOPIC_ASSIGNMENTS,
                {
                    "submission_id": submission_id,
                    "topic_id": topic.id,
                    "assessment_assignment_id": self._assignment.id,
                    "user_id": self._session.user_id,
                    "status": progress.status.value,
                    "updated_at": now,
                    "completed_at": now if progress.is_complete else None,
                },
                conflict_keys=("submission_id", "topic_id"),
            )
        except DataStoreError as e:
            # The marker is derived data; the next answer in this topic rewrites it.
            logger.warning("Topic progress marker not updated: %s", e)

    async def _save_scores(self, submission_id: str, sheet: ScoreSheet) -> None:
        for scored in sheet.questions:
            selection = self._answers.get(scored.question_id)
            version = self._answers.version(scored.question_id)
            if selection is None or version is None:
                continue
            record = self._answer_record(submission_id, scored.question_id, selection)
            record["score"] = scored.score
            await self._store.upsert(
                Collection.SUBMITTED_ANSWERS,
                record,
                conflict_keys=("submission_id", "question_id"),
            )
            self._answers.mark_synced(scored.question_id, version)

    def _log_extra(
        self, question_id: str | None = None, *, submission_id: str | None = None
    ) -> dict[str, Any]:
        if submission_id is None and self._submission is not None:
            submission_id = self._submission.id
        return {
            "user_id": self._session.user_id,
            "assignment_id": self._assignment.id,
            "submission_id": submission_id,
            "question_id": question_id,
        }
