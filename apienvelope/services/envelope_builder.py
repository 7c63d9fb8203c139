"""
API Envelope — Envelope Synthesis
===================================

What:  Builds the success or error envelope bytes for a classified body.
Why:   Keeps "what goes into the envelope" separate from the ASGI plumbing in
       the middleware, so it can be tested without an application.
How:   Success (status 200-399) → ApiResponse with "{METHOD} Success" and the
       typed result. Anything else → ApiErrorResponse from the status table.

Success result by body shape:
    EMPTY       → no result
    JSON        → the parsed object/array
    ENVELOPED   → body passed through unchanged (never double-wrapped)
    SCALAR      → coerced value (42, Decimal, bool, unquoted string), JSON null
                  → no result, otherwise the raw text
    HTML        → raw text, markup untouched
"""

from typing import Any, Optional

from apienvelope import messages
from apienvelope.config import WrapperOptions
from apienvelope.schemas.envelope import ApiErrorResponse, ApiResponse
from apienvelope.serialization import JsonSerializer
from apienvelope.services.body_classifier import (
    BodyKind,
    ClassifiedBody,
    coerce_single_value,
    is_request_successful,
)


class EnvelopeBuilder:
    """Envelope synthesis bound to one options bundle and serializer."""

    def __init__(self, options: WrapperOptions, serializer: JsonSerializer):
        self.options = options
        self.serializer = serializer

    def classify_and_wrap(
        self, body: ClassifiedBody, status_code: int, method: str
    ) -> bytes:
        if is_request_successful(status_code):
            return self.wrap_success(body, status_code, method)
        return self.wrap_error(body, status_code)

    def wrap_success(self, body: ClassifiedBody, status_code: int, method: str) -> bytes:
        if body.kind is BodyKind.ENVELOPED:
            return body.text.encode("utf-8")

        envelope = ApiResponse(
            is_error=False if self.options.show_error_flag else None,
            status_code=status_code if self.options.show_status_code else None,
            message=messages.success_message(method),
            result=self._success_result(body),
        )
        return self.serializer.dumps(envelope)

    def wrap_error(self, body: ClassifiedBody, status_code: int) -> bytes:
        message, code = messages.status_message(status_code, self._error_override(body))
        return self.serializer.dumps(ApiErrorResponse.from_message(message, code))

    @staticmethod
    def _success_result(body: ClassifiedBody) -> Any:
        if body.kind is BodyKind.EMPTY:
            return None
        if body.kind is BodyKind.JSON:
            return body.document
        if body.kind is BodyKind.HTML:
            return body.text
        if body.is_json and body.document is None:
            return None
        is_coerced, value = coerce_single_value(body.text)
        return value if is_coerced else body.text

    @staticmethod
    def _error_override(body: ClassifiedBody) -> Optional[str]:
        """Non-JSON body text replaces the table's default message."""
        if body.kind in (BodyKind.EMPTY, BodyKind.JSON, BodyKind.ENVELOPED):
            return None
        if body.is_json:
            return body.document if isinstance(body.document, str) else None
        return body.text
