"""
API Envelope — Failure Classification
=======================================

What:  Maps any caught exception onto a closed set of failure kinds.
Why:   Both failure modes (plain envelope, problem details) need the same
       decision. Classifying once keeps the translators free of isinstance
       chains: each translator holds one function per kind.
How:   classify_failure() inspects the exception and returns a frozen dataclass.

Failure kinds:
    ValidationFailure      ApiException carrying validation errors
    StructuredFailure      ApiException with a custom payload or message/code
    AuthFailure            UnauthorizedError or builtin PermissionError
    ProblemDetailsFailure  ApiProblemDetailsException
    UnknownFailure         anything else
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Union

from fastapi.exceptions import RequestValidationError

from apienvelope.exceptions import (
    ApiException,
    ApiProblemDetailsException,
    UnauthorizedError,
)
from apienvelope.schemas.envelope import ProblemDetails, ValidationError


@dataclass(frozen=True)
class ValidationFailure:
    exception: ApiException
    validation_errors: List[ValidationError]
    status_code: int


@dataclass(frozen=True)
class StructuredFailure:
    exception: ApiException
    message: str
    code: str
    status_code: int
    custom_error: Optional[Any] = None
    reference_link: Optional[str] = None


@dataclass(frozen=True)
class AuthFailure:
    exception: BaseException
    status_code: int = 401


@dataclass(frozen=True)
class ProblemDetailsFailure:
    exception: ApiProblemDetailsException
    problem: ProblemDetails


@dataclass(frozen=True)
class UnknownFailure:
    exception: BaseException
    status_code: int = 500


Failure = Union[
    ValidationFailure,
    StructuredFailure,
    AuthFailure,
    ProblemDetailsFailure,
    UnknownFailure,
]


def classify_failure(exc: BaseException) -> Failure:
    if isinstance(exc, ApiProblemDetailsException):
        return ProblemDetailsFailure(exception=exc, problem=exc.problem)

    if isinstance(exc, ApiException):
        if exc.validation_errors is not None:
            return ValidationFailure(
                exception=exc,
                validation_errors=exc.validation_errors,
                status_code=exc.status_code,
            )
        return StructuredFailure(
            exception=exc,
            message=exc.message,
            code=exc.error_code or type(exc).__name__,
            status_code=exc.status_code,
            custom_error=exc.custom_error,
            reference_link=exc.reference_link,
        )

    if isinstance(exc, (UnauthorizedError, PermissionError)):
        return AuthFailure(exception=exc)

    return UnknownFailure(exception=exc)


def root_cause(exc: BaseException) -> BaseException:
    """Innermost exception of a raise-from / during-handling chain."""
    seen = {id(exc)}
    while True:
        nested = exc.__cause__
        if nested is None and not exc.__suppress_context__:
            nested = exc.__context__
        if nested is None or id(nested) in seen:
            return exc
        seen.add(id(nested))
        exc = nested


def validation_errors_from_request(exc: RequestValidationError) -> List[ValidationError]:
    """
    Flatten FastAPI request-validation errors into field/message pairs.

    The location prefix ("body", "query", ...) is dropped:
        {"loc": ("body", "user", "name"), "msg": "Field required"}
        → ValidationError(field="user.name", message="Field required")
    """
    location_roots = {"body", "query", "path", "header", "cookie"}
    errors: List[ValidationError] = []
    for error in exc.errors():
        loc = list(error.get("loc", ()))
        if len(loc) > 1 and loc[0] in location_roots:
            loc = loc[1:]
        field = ".".join(str(part) for part in loc) or "request"
        errors.append(ValidationError(field=field, message=str(error.get("msg", ""))))
    return errors
