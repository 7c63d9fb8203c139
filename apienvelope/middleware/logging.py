"""
API Envelope — Access Logging
===============================

What:  One structured log line per request handled by the wrapper.
Why:   Enables monitoring and debugging without a separate logging middleware:
       the wrapper already knows the final status and the buffered request body.
How:   Called from the wrapper's finally block once the response is finalized.
       Structured fields go through `extra=` so JSON formatters can index them.

Log line:
    Source:[127.0.0.1] Request: POST http://test/api/items?x=1 {"name": "a"}
    Responded with [200] in 3.2ms

Request body:
    Logged only when log_request_data is on, the endpoint is not marked
    @request_data_log_ignore, and either the request succeeded or
    log_request_data_on_exception is on.
"""

import logging
import time

from starlette.datastructures import Headers
from starlette.types import Scope

from apienvelope.config import WrapperOptions
from apienvelope.markers import is_request_data_log_ignored

logger = logging.getLogger("apienvelope.access")


def should_log_request_data(options: WrapperOptions, scope: Scope, is_request_ok: bool) -> bool:
    if not options.log_request_data:
        return False
    if is_request_data_log_ignored(scope.get("endpoint")):
        return False
    return is_request_ok or options.log_request_data_on_exception


def describe_request(scope: Scope, request_body: str = "") -> str:
    """Method, scheme, host, path and query string (plus body when given)."""
    host = Headers(scope=scope).get("host", "")
    query = scope.get("query_string", b"").decode("latin-1")
    summary = f"{scope.get('method', '')} {scope.get('scheme', 'http')}://{host}{scope.get('path', '')}"
    if query:
        summary = f"{summary}?{query}"
    if request_body:
        summary = f"{summary} {request_body}"
    return summary


def log_access(
    options: WrapperOptions,
    scope: Scope,
    request_body: bytes,
    start_time: float,
    status_code: int,
    is_request_ok: bool,
) -> None:
    if not options.enable_response_logging:
        return

    duration_ms = (time.perf_counter() - start_time) * 1000
    client = scope.get("client")
    client_ip = client[0] if client else "unknown"

    body_text = ""
    if should_log_request_data(options, scope, is_request_ok):
        body_text = request_body.decode("utf-8", errors="replace")

    logger.info(
        "Source:[%s] Request: %s Responded with [%d] in %.1fms",
        client_ip,
        describe_request(scope, body_text),
        status_code,
        duration_ms,
        extra={
            "method": scope.get("method", ""),
            "path": scope.get("path", ""),
            "status": status_code,
            "duration_ms": round(duration_ms, 2),
            "client_ip": client_ip,
        },
    )
