"""Translate service failures into HTTP errors."""

from __future__ import annotations

from fastapi import HTTPException, status

from app.backend.src.services.outcomes import ErrorCode, Failure

_STATUS_BY_CODE = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.PERSISTENCE_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def failure_to_http(failure: Failure) -> HTTPException:
    """Return the HTTP error for a failure; business conflicts map to 409."""

    return HTTPException(
        status_code=_STATUS_BY_CODE.get(failure.code, status.HTTP_409_CONFLICT),
        detail={"code": failure.code.value, "message": failure.message},
    )


__all__ = ["failure_to_http"]
