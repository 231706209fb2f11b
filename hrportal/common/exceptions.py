"""Application errors and their RFC 7807 ``application/problem+json`` rendering.

Each subclass fixes its HTTP status, problem type slug and title at class
level; instances only carry the human-readable detail and, for validation
failures, a ``{field: [messages]}`` map.
"""

from __future__ import annotations

from typing import Any, ClassVar, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

BASE_ERROR_URI = "https://hrportal.local/errors"
PROBLEM_JSON = "application/problem+json"


# ── Exception hierarchy ─────────────────────────────────────────────

class AppException(Exception):
    """Base for every error the API reports as a problem document."""

    status_code: ClassVar[int] = 500
    error_type: ClassVar[str] = "internal-error"
    title: ClassVar[str] = "Internal Error"

    def __init__(self, detail: str, errors: Optional[dict[str, list[str]]] = None) -> None:
        self.detail = detail
        self.errors = errors
        super().__init__(detail)


class NotFoundException(AppException):
    status_code = 404
    error_type = "not-found"
    title = "Not Found"

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        self.entity_type = entity_type
        super().__init__(f"{entity_type} with id '{entity_id}' does not exist.")


class ForbiddenException(AppException):
    """Role check or request-authenticity (CSRF) failure."""

    status_code = 403
    error_type = "forbidden"
    title = "Forbidden"

    def __init__(self, detail: str = "You do not have permission to perform this action.") -> None:
        super().__init__(detail)


class ValidationException(AppException):
    """Business-rule validation failure; ``detail`` is the first field message."""

    status_code = 422
    error_type = "validation-error"
    title = "Validation Error"

    def __init__(self, errors: dict[str, list[str]]) -> None:
        first = next((msgs[0] for msgs in errors.values() if msgs), None)
        super().__init__(first or "One or more fields failed validation.", errors)


class InsufficientBalanceException(AppException):
    status_code = 422
    error_type = "insufficient-balance"
    title = "Insufficient Balance"

    def __init__(self, leave_type: str, requested: int, remaining: int) -> None:
        self.leave_type = leave_type
        self.requested = requested
        self.remaining = remaining
        self.shortfall = requested - remaining
        super().__init__(
            f"Insufficient leave balance for {leave_type} leave: "
            f"requested {requested} day(s), {remaining} remaining "
            f"({self.shortfall} short).",
            {"leave_type": [f"Only {remaining} {leave_type} day(s) remaining."]},
        )


class InvalidRangeException(AppException):
    status_code = 422
    error_type = "invalid-range"
    title = "Invalid Date Range"

    def __init__(self, start: Any, end: Any) -> None:
        super().__init__(
            f"End date {end} is before start date {start}.",
            {"end_date": ["End date cannot be before start date."]},
        )


class PersistenceException(AppException):
    """Datastore failure. The detail never carries driver output."""

    error_type = "persistence-error"
    title = "Persistence Error"

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__("We could not save your changes. Please try again.")


# ── Problem document ────────────────────────────────────────────────

def problem_response(
    request: Request,
    *,
    status: int,
    error_type: str,
    title: str,
    detail: str,
    errors: Optional[dict[str, list[str]]] = None,
) -> JSONResponse:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{error_type}",
        "title": title,
        "status": status,
        "detail": detail,
        "instance": request.url.path,
    }
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=status, content=body, media_type=PROBLEM_JSON)


async def _app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    return problem_response(
        request,
        status=exc.status_code,
        error_type=exc.error_type,
        title=exc.title,
        detail=exc.detail,
        errors=exc.errors,
    )


def _field_name(loc: tuple) -> str:
    # ("body", "notes") -> "notes"; ("query", "page") -> "page"
    if len(loc) > 1:
        return ".".join(str(part) for part in loc[1:])
    return str(loc[0]) if loc else "unknown"


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        errors.setdefault(_field_name(tuple(err.get("loc", ()))), []).append(
            err.get("msg", "Invalid value")
        )
    return problem_response(
        request,
        status=422,
        error_type=ValidationException.error_type,
        title=ValidationException.title,
        detail="Request validation failed.",
        errors=errors,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Render AppException and request-validation errors as problem+json."""
    app.add_exception_handler(AppException, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _request_validation_handler)  # type: ignore[arg-type]
