"""
API Envelope — Response Wrapper Middleware
============================================

What:  Rewrites every API response (and every unhandled failure) into one
       canonical envelope before it reaches the client.
Why:   Handlers return whatever is natural for them (a dict, a number, a
       string, nothing, or an exception); clients always get the same
       success/error structure and a coherent status code.
How:   Pure ASGI middleware. The downstream app writes into a CaptureBuffer;
       the wrapper inspects status and body, synthesizes the final bytes and
       delivers them through a Starlette Response exactly once.

Implemented as pure ASGI rather than BaseHTTPMiddleware:
    1. BaseHTTPMiddleware wraps unhandled exceptions in ExceptionGroup, and
       Starlette sends Exception handlers to ServerErrorMiddleware, which
       re-raises after responding. Catching here contains the failure.
    2. The endpoint and route FastAPI resolved are visible in the shared
       scope after the downstream call, which the markers need.

Pipeline:
    request ─→ PathFilter ──skip──→ downstream (untouched)
                   │
                   ▼
         response already started? ──→ warning, done
                   │
                   ▼
         buffer request body (POST/PUT/PATCH), replay it downstream
                   │
                   ▼
         downstream writes into CaptureBuffer
           ├── raised       → ExceptionTranslator / ProblemDetailsTranslator
           ├── @wrap_ignore, 204, 304, Content-Encoding → copied verbatim
           └── otherwise    → BodyClassifier → envelope synthesis
                   │
                   ▼
         final bytes written once (generic 500 envelope if synthesis fails)
                   │
                   ▼
         access log line

Registration:
    app.add_middleware(ResponseWrapperMiddleware, options=WrapperOptions(...))
"""

import logging
import time
from typing import Optional, Sequence, Tuple

from starlette.datastructures import Headers
from starlette.responses import Response
from starlette.types import ASGIApp, Receive, Scope, Send

from apienvelope import messages
from apienvelope.config import WrapperOptions, wrapper_options
from apienvelope.constants import JSON_MEDIA_TYPE, PLAIN_TEXT_MEDIA_TYPE
from apienvelope.markers import declares_envelope, is_wrap_ignored
from apienvelope.middleware.capture import (
    CaptureBuffer,
    marking_send,
    read_request_body,
    response_has_started,
)
from apienvelope.middleware.logging import log_access
from apienvelope.schemas.envelope import ApiErrorResponse
from apienvelope.serialization import JsonSerializer
from apienvelope.services.body_classifier import (
    BodyKind,
    ClassifiedBody,
    classify_body,
    is_request_successful,
)
from apienvelope.services.envelope_builder import EnvelopeBuilder
from apienvelope.services.exception_translator import ExceptionTranslator
from apienvelope.services.path_filter import PathFilter, starts_with_segments
from apienvelope.services.problem_details import ProblemDetailsTranslator

logger = logging.getLogger(__name__)

# Statuses whose body is never transformed.
VERBATIM_STATUSES = frozenset({204, 304})

Outcome = Tuple[int, bool]


class ResponseWrapperMiddleware:
    """
    Envelope middleware bound to one read-only options bundle.

    Everything built in __init__ is immutable and shared by all requests;
    per-request state lives in locals and the CaptureBuffer.
    """

    def __init__(self, app: ASGIApp, options: Optional[WrapperOptions] = None):
        self.app = app
        self.options = options or wrapper_options
        self.serializer = JsonSerializer(
            naming_policy=self.options.naming_policy,
            ignore_null=self.options.ignore_null_fields,
        )
        self.path_filter = PathFilter(self.options)
        self.envelopes = EnvelopeBuilder(self.options, self.serializer)
        self.exceptions = ExceptionTranslator(self.options)
        self.problems = ProblemDetailsTranslator(self.options, self.serializer)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if await self.path_filter.should_skip(scope.get("path", "")):
            await self.app(scope, receive, marking_send(scope, send))
            return

        if response_has_started(scope):
            logger.warning(
                "The response has already started, the response wrapper will not be executed."
            )
            return

        start_time = time.perf_counter()
        request_body, receive = await read_request_body(scope, receive)
        status_code, is_request_ok = 500, False
        try:
            with CaptureBuffer(scope, send) as capture:
                status_code, is_request_ok = await self._process(scope, receive, send, capture)
        finally:
            log_access(self.options, scope, request_body, start_time, status_code, is_request_ok)

    # ── Orchestration ─────────────────────────────────────────────────────

    async def _process(
        self, scope: Scope, receive: Receive, send: Send, capture: CaptureBuffer
    ) -> Outcome:
        failure: Optional[Exception] = None
        try:
            await self.app(scope, receive, capture)
        except Exception as exc:
            failure = exc

        if capture.passthrough:
            if failure is not None:
                logger.warning(
                    "Streaming response failed after it started; it cannot be rewritten: %s",
                    failure,
                    exc_info=(type(failure), failure, failure.__traceback__),
                )
                return capture.status_code, False
            return capture.status_code, is_request_successful(capture.status_code)

        if failure is None and capture.status_code is None:
            failure = RuntimeError("No response returned.")

        try:
            if failure is not None:
                return await self._write_failure(scope, receive, send, failure), False
            return await self._write_captured(scope, receive, send, capture)
        except Exception:
            logger.exception("Unable to build the response envelope for %s", scope.get("path", ""))
            if response_has_started(scope):
                return 500, False
            return await self._write_fallback(scope, receive, send), False

    async def _write_captured(
        self, scope: Scope, receive: Receive, send: Send, capture: CaptureBuffer
    ) -> Outcome:
        status_code = capture.status_code

        if (
            is_wrap_ignored(scope.get("endpoint"))
            or status_code in VERBATIM_STATUSES
            or capture.is_encoded
        ):
            await capture.replay()
            return status_code, is_request_successful(status_code)

        raw = capture.body
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            # Binary payloads cannot be classified.
            await capture.replay()
            return status_code, is_request_successful(status_code)

        body = classify_body(text, declared_envelope=declares_envelope(scope))

        if self._is_page_request(body, status_code):
            status_code = 404
            path = scope.get("path", "")
            if raw and not starts_with_segments(path, self.options.wrap_api_path_prefix):
                await self._write(
                    scope,
                    receive,
                    send,
                    status_code,
                    messages.NOT_API_ONLY.encode("utf-8"),
                    PLAIN_TEXT_MEDIA_TYPE,
                )
                return status_code, False

        if is_request_successful(status_code):
            if self.options.ignore_success_wrap:
                await capture.replay()
                return status_code, True
            content = self.envelopes.wrap_success(body, status_code, scope.get("method", "GET"))
            await self._write(
                scope,
                receive,
                send,
                status_code,
                content,
                JSON_MEDIA_TYPE,
                capture.passthrough_headers(),
            )
            return status_code, True

        if self.options.disable_problem_details:
            content, media_type = self.envelopes.wrap_error(body, status_code), JSON_MEDIA_TYPE
        else:
            result = self.problems.from_body(body, status_code, scope.get("path", ""))
            content, media_type = self.problems.render(result, self._accept(scope))
        await self._write(
            scope, receive, send, status_code, content, media_type, capture.passthrough_headers()
        )
        return status_code, False

    def _is_page_request(self, body: ClassifiedBody, status_code: int) -> bool:
        """An HTML 200 on a site that also serves pages: a page request, not an API call."""
        return (
            not self.options.is_api_only
            and not self.options.bypass_html_validation
            and body.kind is BodyKind.HTML
            and status_code == 200
        )

    # ── Failures ──────────────────────────────────────────────────────────

    async def _write_failure(
        self, scope: Scope, receive: Receive, send: Send, exc: Exception
    ) -> int:
        """Discard whatever was captured and write the failure envelope."""
        if self.options.disable_problem_details:
            status_code, envelope = self.exceptions.translate(exc)
            content, media_type = self.serializer.dumps(envelope), JSON_MEDIA_TYPE
        else:
            result = self.problems.from_exception(exc, scope.get("path", ""))
            status_code = result.status_code
            content, media_type = self.problems.render(result, self._accept(scope))
        await self._write(scope, receive, send, status_code, content, media_type)
        return status_code

    async def _write_fallback(self, scope: Scope, receive: Receive, send: Send) -> int:
        message, code = messages.status_message(500)
        envelope = ApiErrorResponse.from_message(message, code)
        content = self.serializer.dumps(envelope)
        await self._write(scope, receive, send, 500, content, JSON_MEDIA_TYPE)
        return 500

    # ── Delivery ──────────────────────────────────────────────────────────

    @staticmethod
    def _accept(scope: Scope) -> Optional[str]:
        return Headers(scope=scope).get("accept")

    @staticmethod
    async def _write(
        scope: Scope,
        receive: Receive,
        send: Send,
        status_code: int,
        content: bytes,
        media_type: str,
        headers: Sequence[Tuple[bytes, bytes]] = (),
    ) -> None:
        """Deliver final bytes the way a route's return value is delivered."""
        response = Response(content=content, status_code=status_code, media_type=media_type)
        response.raw_headers.extend(headers)
        await response(scope, receive, marking_send(scope, send))
