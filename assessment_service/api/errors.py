"""Maps service exceptions to HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException, status

from assessment_service.repos.data_store import DataStoreError
from assessment_service.services.errors import (
    AnswerRejectedError,
    CompletionError,
    ConflictError,
    DataLoadError,
    ForbiddenError,
    IncompleteAssessmentError,
    InvalidNavigationError,
    NotFoundError,
    QuestionValidationError,
)


def to_http_error(exc: Exception) -> HTTPException:
    match exc:
        case NotFoundError():
            return HTTPException(status.HTTP_404_NOT_FOUND, detail=str(exc))
        case ForbiddenError():
            return HTTPException(status.HTTP_403_FORBIDDEN, detail=str(exc))
        case IncompleteAssessmentError():
            return HTTPException(
                status.HTTP_409_CONFLICT,
                detail={
                    "message": str(exc),
                    "incomplete_topic_ids": exc.incomplete_topic_ids,
                },
            )
        case ConflictError():
            return HTTPException(status.HTTP_409_CONFLICT, detail=str(exc))
        case (
            AnswerRejectedError()
            | InvalidNavigationError()
            | QuestionValidationError()
        ):
            return HTTPException(422, detail=str(exc))
        case CompletionError():
            return HTTPException(
                status.HTTP_502_BAD_GATEWAY,
                detail={"message": str(exc), "step": exc.step},
            )
        case DataLoadError() | DataStoreError():
            return HTTPException(status.HTTP_502_BAD_GATEWAY, detail=str(exc))
        case _:
            return HTTPException(
                status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal error"
            )
