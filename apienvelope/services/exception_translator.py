"""
API Envelope — Exception Translator (plain error mode)
========================================================

What:  Turns a caught exception into a status code and an ApiErrorResponse.
Why:   Clients always get the same error structure, whatever was raised.
How:   classify_failure() picks the failure kind; one method per kind builds
       the envelope; one error log line is emitted per translated failure.
When:  Used when disable_problem_details is set. Otherwise see
       apienvelope.services.problem_details.

Mapping:
    ValidationFailure      → its status, "Your request parameters did not
                             validate." / ModelStateError + validationErrors
    StructuredFailure      → its status, innerError payload, or message/code
                             (code defaults to the exception class name)
    AuthFailure            → 401, fixed unauthorized message
    ProblemDetailsFailure  → the problem's status, detail (or title) as message
    UnknownFailure         → 500, generic message; debug mode shows the real
                             message and the traceback in "details"
"""

import logging
import traceback
from typing import Callable, Dict, Tuple, Type

from apienvelope import messages
from apienvelope.config import WrapperOptions
from apienvelope.schemas.envelope import ApiErrorResponse
from apienvelope.services.failures import (
    AuthFailure,
    Failure,
    ProblemDetailsFailure,
    StructuredFailure,
    UnknownFailure,
    ValidationFailure,
    classify_failure,
    root_cause,
)

logger = logging.getLogger(__name__)

Translation = Tuple[int, ApiErrorResponse]


def format_traceback(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


def log_failure(
    options: WrapperOptions, exc: BaseException, status_code: int, message: str
) -> None:
    """One ERROR line per handled failure, when exception logging is enabled."""
    if not options.enable_exception_logging:
        return
    logger.error(
        "[%d]: %s",
        status_code,
        message,
        exc_info=(type(exc), exc, exc.__traceback__),
        extra={"status": status_code, "error_type": type(exc).__name__},
    )


class ExceptionTranslator:
    """Plain-mode translator bound to one options bundle."""

    def __init__(self, options: WrapperOptions):
        self.options = options
        self._handlers: Dict[Type, Callable[..., Translation]] = {
            ValidationFailure: self._translate_validation,
            StructuredFailure: self._translate_structured,
            AuthFailure: self._translate_auth,
            ProblemDetailsFailure: self._translate_problem,
            UnknownFailure: self._translate_unknown,
        }

    def translate(self, exc: BaseException) -> Translation:
        failure: Failure = classify_failure(exc)
        status_code, envelope = self._handlers[type(failure)](failure)
        log_failure(self.options, exc, status_code, str(root_cause(exc)))
        return status_code, envelope

    def _translate_validation(self, failure: ValidationFailure) -> Translation:
        return (
            failure.status_code,
            ApiErrorResponse.from_validation_errors(failure.validation_errors),
        )

    def _translate_structured(self, failure: StructuredFailure) -> Translation:
        if failure.custom_error is not None:
            return failure.status_code, ApiErrorResponse.from_custom_error(failure.custom_error)
        return failure.status_code, ApiErrorResponse.from_message(
            failure.message, failure.code, reference_document_link=failure.reference_link
        )

    def _translate_auth(self, failure: AuthFailure) -> Translation:
        return (
            failure.status_code,
            ApiErrorResponse.from_message(messages.UNAUTHORIZED, "UnAuthorized"),
        )

    def _translate_problem(self, failure: ProblemDetailsFailure) -> Translation:
        problem = failure.problem
        status_code = problem.status or 500
        if problem.validation_errors is not None:
            return status_code, ApiErrorResponse.from_validation_errors(problem.validation_errors)
        message = problem.detail or problem.title or messages.UNKNOWN
        return status_code, ApiErrorResponse.from_message(message, type(failure.exception).__name__)

    def _translate_unknown(self, failure: UnknownFailure) -> Translation:
        exc = failure.exception
        if self.options.is_debug:
            envelope = ApiErrorResponse.from_message(
                str(root_cause(exc)), type(exc).__name__, format_traceback(exc)
            )
        else:
            envelope = ApiErrorResponse.from_message(messages.UNHANDLED, type(exc).__name__)
        return failure.status_code, envelope
