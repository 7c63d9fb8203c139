# Schemas package init
"""
API Envelope — Schemas Package
================================

What:  Data shapes placed on the wire by the wrapper (no pipeline logic).
"""

from apienvelope.schemas.envelope import (
    ApiError,
    ApiErrorResponse,
    ApiResponse,
    EnvelopeModel,
    ErrorDetails,
    ProblemDetails,
    ValidationError,
)

__all__ = [
    "ApiError",
    "ApiErrorResponse",
    "ApiResponse",
    "EnvelopeModel",
    "ErrorDetails",
    "ProblemDetails",
    "ValidationError",
]
