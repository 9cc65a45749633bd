"""
Translation of engine reason codes into HTTP errors.

The engine returns reasons as values; this is the one place where they
become exceptions, so routes can render a message per code.
"""

from enum import Enum

from fastapi import HTTPException, status

from labbook.domain.types import AdmissionReason, StorageFailure, TransitionError, describe

STATUS_CODES = {
    AdmissionReason.RESOURCE_UNAVAILABLE: status.HTTP_409_CONFLICT,
    AdmissionReason.SLOT_CONFLICT: status.HTTP_409_CONFLICT,
    AdmissionReason.INVALID_WINDOW: status.HTTP_422_UNPROCESSABLE_ENTITY,
    AdmissionReason.DURATION_EXCEEDED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    AdmissionReason.DATE_IN_PAST: status.HTTP_422_UNPROCESSABLE_ENTITY,
    AdmissionReason.TOO_FAR_IN_ADVANCE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    AdmissionReason.SLOT_ALREADY_PASSED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    AdmissionReason.PURPOSE_REQUIRED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    AdmissionReason.PURPOSE_TOO_LONG: status.HTTP_422_UNPROCESSABLE_ENTITY,
    TransitionError.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    TransitionError.REASON_REQUIRED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    TransitionError.REASON_TOO_LONG: status.HTTP_422_UNPROCESSABLE_ENTITY,
    TransitionError.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    TransitionError.ALREADY_ELAPSED: status.HTTP_409_CONFLICT,
    StorageFailure.CONFLICT_AT_COMMIT: status.HTTP_409_CONFLICT,
    StorageFailure.STORAGE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def rejection(reason: Enum, **extra) -> HTTPException:
    return HTTPException(
        status_code=STATUS_CODES.get(reason, status.HTTP_400_BAD_REQUEST),
        detail={"code": reason.value, "message": describe(reason), **extra},
    )


def not_found(what: str, identifier: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"{what} {identifier} not found",
    )
