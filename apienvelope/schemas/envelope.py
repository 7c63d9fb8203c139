"""
API Envelope — Envelope Schemas
=================================

What:  Pydantic models for every shape the wrapper puts on the wire.
Why:   One canonical success shape and one canonical error shape, no matter what
       the handler returned.
How:   Plain data models (no behavior beyond named constructors). Field order is
       the serialization order. Field aliases default to camelCase so handlers
       that return an ApiResponse directly produce the same shape FastAPI would.
Who:   Built by the envelope builder and the failure translators; serialized by
       JsonSerializer.

Shapes:
    Success:          {"isError"?, "statusCode"?, "message"?, "result"?}
    Error:            {"isError": true, "error": {"message"?, "code"?,
                       "validationErrors"?, "details"?, "innerError"?}}
    Problem details:  {"type", "title", "status", "detail", "instance",
                       "isError": true, "errors"?, "validationErrors"?}
"""

from http import HTTPStatus
from typing import Any, ClassVar, FrozenSet, List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

VALIDATION_FAILED_MESSAGE = "Your request parameters did not validate."
VALIDATION_FAILED_CODE = "ModelStateError"


def reason_phrase(status_code: int) -> str:
    """HTTP reason phrase for a status code ("Unknown" for unregistered codes)."""
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Unknown"


class EnvelopeModel(BaseModel):
    """
    Base for all envelope models.

    verbatim_fields: field names that keep their exact spelling whatever
    naming policy the serializer applies.
    """

    verbatim_fields: ClassVar[FrozenSet[str]] = frozenset()

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
    }


class ValidationError(EnvelopeModel):
    """One failed field-level rule."""

    field: str = Field(description="Name of the field that failed validation")
    message: str = Field(description="Why the field failed validation")


class ApiResponse(EnvelopeModel):
    """
    Success envelope.

    Handlers may return this type directly (declare it as the response model);
    the wrapper then passes their JSON through instead of wrapping it twice.
    """

    is_error: Optional[bool] = Field(default=None)
    status_code: Optional[int] = Field(default=None)
    message: Optional[str] = Field(default=None)
    result: Optional[Any] = Field(default=None)


class ApiError(EnvelopeModel):
    """
    Error detail block. Exactly one of validation_errors, inner_error or the
    plain message/code pair is populated.
    """

    message: Optional[str] = Field(default=None)
    code: Optional[str] = Field(default=None)
    validation_errors: Optional[List[ValidationError]] = Field(default=None)
    details: Optional[str] = Field(default=None)
    inner_error: Optional[Any] = Field(default=None)
    reference_document_link: Optional[str] = Field(default=None)


class ApiErrorResponse(EnvelopeModel):
    """Error envelope for the plain (non problem-details) failure mode."""

    is_error: bool = Field(default=True)
    error: ApiError = Field(default_factory=ApiError)

    @classmethod
    def from_message(
        cls,
        message: str,
        code: str,
        details: Optional[str] = None,
        reference_document_link: Optional[str] = None,
    ) -> "ApiErrorResponse":
        return cls(
            error=ApiError(
                message=message,
                code=code,
                details=details,
                reference_document_link=reference_document_link,
            )
        )

    @classmethod
    def from_validation_errors(
        cls, validation_errors: List[ValidationError]
    ) -> "ApiErrorResponse":
        return cls(
            error=ApiError(
                message=VALIDATION_FAILED_MESSAGE,
                code=VALIDATION_FAILED_CODE,
                validation_errors=list(validation_errors),
            )
        )

    @classmethod
    def from_custom_error(cls, payload: Any) -> "ApiErrorResponse":
        return cls(error=ApiError(inner_error=payload))


class ErrorDetails(EnvelopeModel):
    """Debug-only exception detail attached to problem details."""

    message: str = Field(description="Exception message")
    type: str = Field(description="Exception class name")
    source: str = Field(description="Module where the exception was raised")
    raw: str = Field(description="Formatted traceback")


class ProblemDetails(EnvelopeModel):
    """
    RFC 7807 problem document with the wrapper's extensions.

    The five standard members are never renamed by the naming policy, so the
    document stays a valid application/problem+json body under any policy.
    """

    verbatim_fields: ClassVar[FrozenSet[str]] = frozenset(
        {"type", "title", "status", "detail", "instance"}
    )

    type: Optional[str] = Field(default=None)
    title: Optional[str] = Field(default=None)
    status: Optional[int] = Field(default=None)
    detail: Optional[str] = Field(default=None)
    instance: Optional[str] = Field(default=None)
    is_error: bool = Field(default=True)
    errors: Optional[ErrorDetails] = Field(default=None)
    validation_errors: Optional[List[ValidationError]] = Field(default=None)

    @classmethod
    def for_status(cls, status_code: int, **fields: Any) -> "ProblemDetails":
        """Problem document with type and title derived from the status code."""
        fields.setdefault("type", f"https://httpstatuses.com/{status_code}")
        fields.setdefault("title", reason_phrase(status_code))
        return cls(status=status_code, **fields)
