"""
API Envelope — Exception Hierarchy
====================================

What:  Failures that handlers raise to control the error envelope.
Why:   A handler should say "this is a 404 with code X" or "these fields failed"
       by raising, and let the wrapper produce the envelope and status.
How:   Each exception carries what its envelope needs. The wrapper classifies
       any caught exception (these or anything else) into a closed set of
       failure kinds; see apienvelope.services.failures.
Who:   Raised by route handlers and dependencies; caught by
       ResponseWrapperMiddleware.

Exception Hierarchy:
    ApiEnvelopeError (base)
    ├── ApiException                 → status from the exception (400 default,
    │                                  422 when carrying validation errors)
    ├── ApiProblemDetailsException   → status from the carried problem document
    └── UnauthorizedError            → 401 (builtin PermissionError maps here too)

Anything else is an unknown failure → 500.
"""

from typing import Any, List, Optional, Sequence

from apienvelope.schemas.envelope import (
    VALIDATION_FAILED_MESSAGE,
    ProblemDetails,
    ValidationError,
)


class ApiEnvelopeError(Exception):
    """
    Base exception for all failures understood by the wrapper.

    Attributes:
        message: Human-readable description (safe to return to the client)
    """

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class ApiException(ApiEnvelopeError):
    """
    Structured API failure with an explicit status.

    Three forms, checked in this order by the translator:
        ApiException(validation_errors=[...])  → field-level validation failure
        ApiException(custom_error=payload)     → payload wrapped as innerError
        ApiException("message", 404, "Code")   → plain message/code pair

    reference_link points at documentation for the error. It is written as
    error.referenceDocumentLink in plain envelopes and as the problem "type"
    in problem details.

    Example:
        raise ApiException("Note does not exist.", status_code=404, error_code="NoteNotFound")
    """

    def __init__(
        self,
        message: str = "Request failed",
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        *,
        validation_errors: Optional[Sequence[ValidationError]] = None,
        custom_error: Any = None,
        reference_link: Optional[str] = None,
    ):
        super().__init__(message)
        if status_code is None:
            status_code = 422 if validation_errors is not None else 400
        self.status_code = status_code
        self.error_code = error_code
        self.validation_errors: Optional[List[ValidationError]] = (
            list(validation_errors) if validation_errors is not None else None
        )
        self.custom_error = custom_error
        self.reference_link = reference_link

    @classmethod
    def from_validation_errors(
        cls, validation_errors: Sequence[ValidationError], status_code: int = 422
    ) -> "ApiException":
        return cls(
            VALIDATION_FAILED_MESSAGE,
            status_code,
            validation_errors=validation_errors,
        )


class ApiProblemDetailsException(ApiEnvelopeError):
    """
    Failure carrying a ready-made RFC 7807 problem document.

    Example:
        raise ApiProblemDetailsException("does not exist.", 404)
        → 404 {"type": "https://httpstatuses.com/404", "title": "does not exist.",
               "status": 404, "instance": "/api/notes/7", "isError": true}
    """

    def __init__(
        self,
        title: Optional[str] = None,
        status_code: int = 500,
        *,
        problem: Optional[ProblemDetails] = None,
    ):
        if problem is None:
            problem = ProblemDetails.for_status(status_code)
            if title is not None:
                problem = problem.model_copy(update={"title": title})
        self.problem = problem
        super().__init__(f"{problem.type} : {problem.title}")

    @property
    def status_code(self) -> int:
        return self.problem.status or 500

    @classmethod
    def from_validation_errors(
        cls, validation_errors: Sequence[ValidationError], status_code: int = 422
    ) -> "ApiProblemDetailsException":
        return cls(
            problem=ProblemDetails.for_status(
                status_code,
                detail=VALIDATION_FAILED_MESSAGE,
                validation_errors=list(validation_errors),
            )
        )

    def __str__(self) -> str:
        return "\n".join(
            [
                f"Type    : {self.problem.type}",
                f"Title   : {self.problem.title}",
                f"Status  : {self.problem.status}",
                f"Detail  : {self.problem.detail}",
                f"Instance: {self.problem.instance}",
            ]
        )


class UnauthorizedError(ApiEnvelopeError):
    """Authorization failure. Always rendered as a fixed 401 envelope."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)
