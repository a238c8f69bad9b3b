"""
Custom exception hierarchy for the kindness journal trends service.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.

Debounced regeneration is deliberately absent from this module: a rejected
regeneration is a normal `None` outcome, not an exception.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class JournalError(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotAuthenticatedError(JournalError):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "NOT_AUTHENTICATED"

    def __init__(self):
        super().__init__(message="A signed-in user is required for this operation.")


class InvalidRangeError(JournalError):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_RANGE"

    def __init__(
        self,
        message: str,
        start: date | None = None,
        end: date | None = None,
        label: str | None = None,
    ):
        details: dict[str, Any] = {}
        if start is not None:
            details["start"] = str(start)
        if end is not None:
            details["end"] = str(end)
        if label is not None:
            details["range"] = label
        super().__init__(message=message, details=details)


class InvalidTimezoneError(InvalidRangeError):
    code = "INVALID_TIMEZONE"

    def __init__(self, tz: str):
        JournalError.__init__(
            self,
            message=f"Unknown IANA timezone: {tz!r}.",
            details={"timezone": tz},
        )


class UpstreamQueryError(JournalError):
    """The event store or profile accessor failed (not the same as 'no rows')."""
    http_status = status.HTTP_502_BAD_GATEWAY
    code = "UPSTREAM_QUERY_FAILED"

    def __init__(self, source: str, reason: str):
        super().__init__(
            message=f"Query against {source} failed.",
            details={"source": source, "reason": reason},
        )


class NarrativeGenerationError(JournalError):
    http_status = status.HTTP_502_BAD_GATEWAY
    code = "NARRATIVE_GENERATION_FAILED"

    def __init__(self, reason: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"AI narrative generation failed: {reason}",
            details=details,
        )


class NarrativeTimeoutError(NarrativeGenerationError):
    http_status = status.HTTP_504_GATEWAY_TIMEOUT
    code = "NARRATIVE_TIMEOUT"

    def __init__(self, timeout_seconds: float):
        JournalError.__init__(
            self,
            message=f"AI narrative generation timed out after {timeout_seconds:g}s.",
            details={"timeout_seconds": timeout_seconds},
        )


class NarrativeUnavailableError(NarrativeGenerationError):
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "NARRATIVE_UNAVAILABLE"

    def __init__(self):
        JournalError.__init__(
            self,
            message="AI narrative generation is not configured on this server.",
        )


class ReflectionPersistenceError(JournalError):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "REFLECTION_PERSISTENCE_FAILED"

    def __init__(self, user_id: str, period: str, reason: str):
        super().__init__(
            message=f"Could not persist the {period} reflection.",
            details={"user_id": user_id, "period": period, "reason": reason},
        )


class MergeChainError(JournalError):
    """A person merge chain loops or exceeds the hop limit. Internal invariant."""
    code = "MERGE_CHAIN_INVALID"

    def __init__(self, person_id: int, chain: list[int]):
        super().__init__(
            message=f"Merge chain starting at person {person_id} does not terminate.",
            details={"person_id": person_id, "chain": chain},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def journal_exception_handler(request: Request, exc: JournalError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
