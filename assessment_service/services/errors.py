from __future__ import annotations

from dataclasses import dataclass


class FlowError(Exception):
    """Base class for errors surfaced to the person taking an assessment."""


class DataLoadError(FlowError):
    """Topics, questions or the submission could not be fetched."""


class NotFoundError(FlowError):
    pass


class ForbiddenError(FlowError):
    pass


class ConflictError(FlowError):
    pass


class AnswerRejectedError(FlowError):
    """The answer was empty, unknown, or arrived after completion."""


class InvalidNavigationError(FlowError):
    pass


class IncompleteAssessmentError(FlowError):
    def __init__(self, incomplete_topic_ids: list[str]) -> None:
        self.incomplete_topic_ids = incomplete_topic_ids
        super().__init__(
            f"{len(incomplete_topic_ids)} topic(s) still have unanswered questions"
        )


class CompletionError(FlowError):
    """A completion step failed; steps already applied are left in place."""

    def __init__(self, step: str, message: str = "") -> None:
        self.step = step
        super().__init__(message or f"completion failed at step {step!r}")


class QuestionValidationError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class AnswerSyncWarning:
    """Returned when an answer was kept locally but the remote write failed."""

    question_id: str
    message: str
