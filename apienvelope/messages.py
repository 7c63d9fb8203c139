"""
API Envelope — Response Messages
==================================

What:  Fixed user-facing texts and the status-code → (message, code) table.
Why:   Clients key on the error code, so codes must never drift between
       endpoints or releases.
How:   Module constants plus an immutable mapping built once at import.
"""

from types import MappingProxyType
from typing import Mapping, Optional, Tuple

SUCCESS = "Success"
NOT_FOUND = "Request not found. The specified uri does not exist."
BAD_REQUEST = "Request invalid."
METHOD_NOT_ALLOWED = "Request responded with 'Method Not Allowed'."
NO_CONTENT = "Request no content. The specified uri does not contain any content."
UNAUTHORIZED = "Request denied. Unauthorized access."
MEDIA_TYPE_NOT_SUPPORTED = "Unsupported Media Type."
UNKNOWN = "Request cannot be processed. Please contact support."
UNHANDLED = "Unhandled Exception occurred. Unable to process the request."
NOT_API_ONLY = (
    "HTML detected in the response body. If API endpoints are served alongside "
    "front-end pages, set is_api_only to false. If the API is meant to return "
    "HTML inside its JSON payload, set bypass_html_validation to true."
)

UNKNOWN_ENTRY: Tuple[str, str] = (UNKNOWN, "Unknown")

STATUS_MESSAGES: Mapping[int, Tuple[str, str]] = MappingProxyType(
    {
        204: (NO_CONTENT, "NoContent"),
        400: (BAD_REQUEST, "BadRequest"),
        401: (UNAUTHORIZED, "UnAuthorized"),
        404: (NOT_FOUND, "NotFound"),
        405: (METHOD_NOT_ALLOWED, "MethodNotAllowed"),
        415: (MEDIA_TYPE_NOT_SUPPORTED, "MediaTypeNotSupported"),
    }
)


def success_message(method: str) -> str:
    """Default success message, e.g. "GET Success"."""
    return f"{method.upper()} {SUCCESS}"


def status_message(
    status_code: int,
    override: Optional[str] = None,
    table: Mapping[int, Tuple[str, str]] = STATUS_MESSAGES,
) -> Tuple[str, str]:
    """
    Look up (message, code) for a status code.

    A non-empty override replaces the table message; the code always comes
    from the table.
    """
    message, code = table.get(status_code, UNKNOWN_ENTRY)
    return (override or message), code
