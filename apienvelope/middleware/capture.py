"""
API Envelope — Response Capture
=================================

What:  ASGI plumbing that lets the wrapper see a response before the client does.
Why:   A response can only be rewritten if none of its bytes have left yet. The
       downstream app is handed a stand-in `send` that buffers everything, and
       the wrapper writes the final bytes to the real `send` exactly once.
How:   CaptureBuffer is an ASGI send callable backed by io.BytesIO and used as a
       context manager, so the buffer is released on every exit path
       (including cancellation).

Started marker:
    Every send that reaches the real transport through this package marks the
    scope. A wrapper that finds the marker already set knows an outer layer
    has begun the response and leaves it alone.

Event streams:
    A text/event-stream response switches the buffer to pass-through at
    http.response.start. Its messages go straight to the client and the
    response is never wrapped.
"""

import io
from typing import List, Optional, Tuple

from starlette.datastructures import Headers
from starlette.types import Message, Receive, Scope, Send

from apienvelope.constants import EVENT_STREAM_MEDIA_TYPE

RESPONSE_STARTED_KEY = "apienvelope.response_started"

# Methods whose request body is buffered for the access log.
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


def mark_response_started(scope: Scope) -> None:
    scope[RESPONSE_STARTED_KEY] = True


def response_has_started(scope: Scope) -> bool:
    return bool(scope.get(RESPONSE_STARTED_KEY, False))


def marking_send(scope: Scope, send: Send) -> Send:
    """Wrap a real send so http.response.start marks the scope."""

    async def wrapped(message: Message) -> None:
        if message["type"] == "http.response.start":
            mark_response_started(scope)
        await send(message)

    return wrapped


async def read_request_body(scope: Scope, receive: Receive) -> Tuple[bytes, Receive]:
    """
    Buffer the request body and return it with a receive that replays it.

    Only POST/PUT/PATCH bodies are read; other methods get (b"", receive)
    unchanged. The replaying receive yields the whole body as one message,
    then defers to the original receive (for http.disconnect).
    """
    if scope.get("method", "").upper() not in BODY_METHODS:
        return b"", receive

    chunks: List[bytes] = []
    while True:
        message = await receive()
        if message["type"] != "http.request":
            break
        chunks.append(message.get("body", b""))
        if not message.get("more_body", False):
            break
    body = b"".join(chunks)

    replayed = False

    async def replay() -> Message:
        nonlocal replayed
        if not replayed:
            replayed = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return body, replay


class CaptureBuffer:
    """
    Stand-in ASGI send for the downstream app.

    Attributes:
        status_code: Status from http.response.start (None until sent)
        headers:     Raw header pairs from http.response.start
        passthrough: True once an event stream has been forwarded
    """

    def __init__(self, scope: Scope, send: Send):
        self.scope = scope
        self.send = marking_send(scope, send)
        self.status_code: Optional[int] = None
        self.headers: List[Tuple[bytes, bytes]] = []
        self.passthrough = False
        self._body = io.BytesIO()

    def __enter__(self) -> "CaptureBuffer":
        return self

    def __exit__(self, *exc_info) -> None:
        self._body.close()

    async def __call__(self, message: Message) -> None:
        message_type = message["type"]

        if message_type == "http.response.start":
            self.status_code = message["status"]
            self.headers = list(message.get("headers", []))
            if self.media_type == EVENT_STREAM_MEDIA_TYPE:
                self.passthrough = True
                await self.send(message)
            return

        if self.passthrough:
            await self.send(message)
            return

        if message_type == "http.response.body":
            self._body.write(message.get("body", b""))

    # ── Captured response ─────────────────────────────────────────────────

    @property
    def header_map(self) -> Headers:
        return Headers(raw=self.headers)

    @property
    def media_type(self) -> str:
        content_type = self.header_map.get("content-type", "")
        return content_type.split(";", 1)[0].strip().lower()

    @property
    def is_encoded(self) -> bool:
        return "content-encoding" in self.header_map

    @property
    def body(self) -> bytes:
        return self._body.getvalue()

    def passthrough_headers(self) -> List[Tuple[bytes, bytes]]:
        """Captured headers minus the ones a rewritten body invalidates."""
        return [
            (name, value)
            for name, value in self.headers
            if name.lower() not in (b"content-length", b"content-type")
        ]

    async def replay(self) -> None:
        """Copy the captured response to the real send unchanged."""
        await self.send(
            {"type": "http.response.start", "status": self.status_code, "headers": self.headers}
        )
        await self.send({"type": "http.response.body", "body": self.body, "more_body": False})
