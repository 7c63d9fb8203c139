"""
API Envelope — Endpoint Markers
=================================

What:  Per-endpoint switches read by ResponseWrapperMiddleware.
How:   Decorators set an attribute on the endpoint function. FastAPI stores the
       matched endpoint and route in the ASGI scope, so the middleware reads
       them back after the downstream call.

Usage:
    @router.get("/api/raw")
    @wrap_ignore
    async def raw() -> PlainTextResponse: ...

    @router.post("/api/login")
    @request_data_log_ignore
    async def login(credentials: Credentials): ...
"""

import inspect
from typing import Any, Callable, Optional, TypeVar

from starlette.types import Scope

from apienvelope.schemas.envelope import ApiResponse

EndpointT = TypeVar("EndpointT", bound=Callable[..., Any])

WRAP_IGNORE_ATTR = "__apienvelope_wrap_ignore__"
REQUEST_DATA_LOG_IGNORE_ATTR = "__apienvelope_request_data_log_ignore__"


def wrap_ignore(endpoint: EndpointT) -> EndpointT:
    """Deliver this endpoint's response exactly as written, never wrapped."""
    setattr(endpoint, WRAP_IGNORE_ATTR, True)
    return endpoint


def request_data_log_ignore(endpoint: EndpointT) -> EndpointT:
    """Keep this endpoint's request body out of the access log."""
    setattr(endpoint, REQUEST_DATA_LOG_IGNORE_ATTR, True)
    return endpoint


def is_wrap_ignored(endpoint: Optional[Callable[..., Any]]) -> bool:
    return bool(getattr(endpoint, WRAP_IGNORE_ATTR, False))


def is_request_data_log_ignored(endpoint: Optional[Callable[..., Any]]) -> bool:
    return bool(getattr(endpoint, REQUEST_DATA_LOG_IGNORE_ATTR, False))


def _is_envelope_type(candidate: Any) -> bool:
    return isinstance(candidate, type) and issubclass(candidate, ApiResponse)


def declares_envelope(scope: Scope) -> bool:
    """
    True when the matched handler already returns the success envelope.

    Checks the route's response_model first, then the endpoint's return
    annotation (string annotations are not resolved).
    """
    route = scope.get("route")
    if _is_envelope_type(getattr(route, "response_model", None)):
        return True

    endpoint = scope.get("endpoint")
    if endpoint is None:
        return False
    try:
        annotation = inspect.signature(endpoint).return_annotation
    except (TypeError, ValueError):
        return False
    return _is_envelope_type(annotation)
