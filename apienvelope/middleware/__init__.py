# Middleware package init
"""
API Envelope — Middleware Package
===================================

What:  The ASGI layer of the wrapper.
Why:   Everything that touches scope/receive/send lives here; the services
       package stays free of ASGI plumbing and can be tested without an app.

Modules:
    response_wrapper.py: ResponseWrapperMiddleware (the pipeline)
    capture.py:          CaptureBuffer, request body replay, started marker
    logging.py:          access log line per wrapped request

Middleware chain built by create_app() (order matters!):
    Request → [CORS] → [GZip] → [ResponseWrapper] → Route Handler

    The wrapper is innermost so it sees the handler's uncompressed body and
    CORS headers are added to the envelope it produces.
"""

from apienvelope.middleware.capture import mark_response_started, response_has_started
from apienvelope.middleware.response_wrapper import ResponseWrapperMiddleware

__all__ = [
    "ResponseWrapperMiddleware",
    "mark_response_started",
    "response_has_started",
]
