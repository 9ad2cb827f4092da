"""Common exception utilities for FastAPI routers."""

from typing import NoReturn

from fastapi import HTTPException, status

from bankrec.services.errors import (
    AlreadyMatchedError,
    ConflictError,
    NotFoundError,
    ParseError,
    PersistenceError,
    ReconciliationError,
    SessionClosedError,
    ValidationError,
)


def raise_not_found(resource_name: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"{resource_name} not found",
    ) from cause


def raise_bad_request(detail: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail,
    ) from cause


def raise_conflict(detail: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=detail,
    ) from cause


def raise_too_large(detail: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=413,
        detail=detail,
    ) from cause


def raise_unprocessable(detail: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=422,
        detail=detail,
    ) from cause


def raise_service_unavailable(detail: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=detail,
    ) from cause


def raise_for_service_error(exc: ReconciliationError) -> NoReturn:
    """Translate a service-layer error into the matching HTTP error."""
    if isinstance(exc, NotFoundError):
        raise_not_found(exc.resource, cause=exc)
    if isinstance(exc, ParseError):
        raise_unprocessable(str(exc), cause=exc)
    if isinstance(exc, (AlreadyMatchedError, SessionClosedError, ConflictError)):
        raise_conflict(str(exc), cause=exc)
    if isinstance(exc, PersistenceError):
        raise_service_unavailable(str(exc), cause=exc)
    if isinstance(exc, ValidationError):
        raise_bad_request(str(exc), cause=exc)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
