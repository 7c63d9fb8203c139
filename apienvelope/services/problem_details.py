"""
API Envelope — Problem Details Translator
===========================================

What:  Builds RFC 7807 problem documents for failures and non-2xx bodies.
Why:   Problem details is the default failure format: standard members clients
       already understand, plus the wrapper's isError/errors/validationErrors
       extensions.
How:   Two entry points:
       - from_exception(): thrown failures, one method per failure kind
       - from_body():      unsuccessful responses the handler wrote itself
       Both fill "instance" with the request path when nothing else set it.
       render() negotiates application/problem+json vs application/problem+xml
       from the Accept header.

Debug mode (unknown failures only):
    detail    → real exception message
    errors    → {message, type, source, raw traceback}
    instance  → the exception's help_link attribute, if it is an absolute URI
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Type
from urllib.parse import urlparse

from apienvelope import messages
from apienvelope.config import WrapperOptions
from apienvelope.constants import PROBLEM_JSON_MEDIA_TYPE, PROBLEM_XML_MEDIA_TYPE
from apienvelope.schemas.envelope import (
    VALIDATION_FAILED_MESSAGE,
    ErrorDetails,
    ProblemDetails,
)
from apienvelope.serialization import JsonSerializer
from apienvelope.services.body_classifier import ClassifiedBody
from apienvelope.services.exception_translator import format_traceback, log_failure
from apienvelope.services.failures import (
    AuthFailure,
    ProblemDetailsFailure,
    StructuredFailure,
    UnknownFailure,
    ValidationFailure,
    classify_failure,
    root_cause,
)


_XML_TYPES = {PROBLEM_XML_MEDIA_TYPE, "application/xml", "text/xml"}
_JSON_TYPES = {PROBLEM_JSON_MEDIA_TYPE, "application/json", "application/*"}


@dataclass(frozen=True)
class ProblemResult:
    """
    A translated failure.

    Exactly one of problem / raw_document is set: raw_document holds a JSON
    error body written by the handler itself, delivered unchanged.
    """

    status_code: int
    problem: Optional[ProblemDetails] = None
    raw_document: Optional[bytes] = None


def negotiate_problem_media_type(accept: Optional[str]) -> str:
    """
    Pick problem+xml or problem+json from an Accept header (JSON by default).

    XML is chosen only when the client explicitly ranks an XML type above
    every JSON type. Headers carrying */* (what browsers send) get JSON.

        "application/problem+xml"                   → application/problem+xml
        "application/xml;q=0.5, application/json"   → application/problem+json
        "text/html,application/xml;q=0.9,*/*;q=0.8" → application/problem+json
    """
    if not accept:
        return PROBLEM_JSON_MEDIA_TYPE

    ranked: List[Tuple[float, int, str]] = []
    for position, part in enumerate(accept.split(",")):
        media, *params = [p.strip() for p in part.split(";")]
        quality = 1.0
        for param in params:
            if param.startswith("q="):
                try:
                    quality = float(param[2:])
                except ValueError:
                    quality = 0.0
        ranked.append((-quality, position, media.lower()))

    if any(media == "*/*" for _, _, media in ranked):
        return PROBLEM_JSON_MEDIA_TYPE

    for negative_quality, _, media in sorted(ranked):
        if negative_quality >= 0:
            continue
        if media in _XML_TYPES:
            return PROBLEM_XML_MEDIA_TYPE
        if media in _JSON_TYPES:
            return PROBLEM_JSON_MEDIA_TYPE
    return PROBLEM_JSON_MEDIA_TYPE


def help_link(exc: BaseException) -> Optional[str]:
    """The exception's help_link attribute when it is a well-formed absolute URI."""
    link = getattr(exc, "help_link", None)
    if not link or not isinstance(link, str):
        return None
    parsed = urlparse(link)
    if parsed.scheme and parsed.netloc:
        return link
    return None


def exception_source(exc: BaseException) -> str:
    """Module of the frame that raised the exception."""
    tb = exc.__traceback__
    if tb is None:
        return type(exc).__module__
    while tb.tb_next is not None:
        tb = tb.tb_next
    return tb.tb_frame.f_globals.get("__name__", type(exc).__module__)


class ProblemDetailsTranslator:
    """Problem-details translator bound to one options bundle and serializer."""

    def __init__(self, options: WrapperOptions, serializer: JsonSerializer):
        self.options = options
        self.serializer = serializer
        self._handlers: Dict[Type, Callable[..., ProblemDetails]] = {
            ProblemDetailsFailure: self._from_problem,
            ValidationFailure: self._from_validation,
            StructuredFailure: self._from_structured,
            AuthFailure: self._from_auth,
            UnknownFailure: self._from_unknown,
        }

    # ── Entry points ──────────────────────────────────────────────────────

    def from_exception(self, exc: BaseException, path: str) -> ProblemResult:
        failure = classify_failure(exc)
        problem = self._with_instance(self._handlers[type(failure)](failure), path)
        status_code = problem.status or 500
        log_failure(self.options, exc, status_code, str(root_cause(exc)))
        return ProblemResult(status_code=status_code, problem=problem)

    def from_body(self, body: ClassifiedBody, status_code: int, path: str) -> ProblemResult:
        if body.is_json:
            return ProblemResult(status_code=status_code, raw_document=body.text.encode("utf-8"))
        problem = ProblemDetails.for_status(status_code, detail=body.text or None)
        return ProblemResult(status_code=status_code, problem=self._with_instance(problem, path))

    def render(self, result: ProblemResult, accept: Optional[str]) -> Tuple[bytes, str]:
        """Returns (body, media type) for a translated failure."""
        if result.raw_document is not None:
            return result.raw_document, PROBLEM_JSON_MEDIA_TYPE
        media_type = negotiate_problem_media_type(accept)
        if media_type == PROBLEM_XML_MEDIA_TYPE:
            return self.serializer.dumps_xml(result.problem), media_type
        return self.serializer.dumps(result.problem), media_type

    # ── Per failure kind ──────────────────────────────────────────────────

    @staticmethod
    def _with_instance(problem: ProblemDetails, path: str) -> ProblemDetails:
        if problem.instance:
            return problem
        return problem.model_copy(update={"instance": path})

    def _from_problem(self, failure: ProblemDetailsFailure) -> ProblemDetails:
        return failure.problem.model_copy(update={"is_error": True})

    def _from_validation(self, failure: ValidationFailure) -> ProblemDetails:
        return ProblemDetails.for_status(
            failure.status_code,
            detail=VALIDATION_FAILED_MESSAGE,
            validation_errors=failure.validation_errors,
        )

    def _from_structured(self, failure: StructuredFailure) -> ProblemDetails:
        if failure.reference_link:
            return ProblemDetails.for_status(
                failure.status_code, detail=failure.message, type=failure.reference_link
            )
        return ProblemDetails.for_status(failure.status_code, detail=failure.message)

    def _from_auth(self, failure: AuthFailure) -> ProblemDetails:
        return ProblemDetails.for_status(failure.status_code, detail=messages.UNAUTHORIZED)

    def _from_unknown(self, failure: UnknownFailure) -> ProblemDetails:
        exc = failure.exception
        if not self.options.is_debug:
            return ProblemDetails.for_status(failure.status_code, detail=messages.UNHANDLED)

        return ProblemDetails.for_status(
            failure.status_code,
            detail=str(exc),
            instance=help_link(exc),
            errors=ErrorDetails(
                message=str(exc),
                type=type(exc).__name__,
                source=exception_source(exc),
                raw=format_traceback(exc),
            ),
        )
