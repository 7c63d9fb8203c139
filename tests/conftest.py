"""
API Envelope — Shared Test Fixtures
=====================================

What:  Reusable fixtures for all test modules.
Why:   Avoids duplicating the demo application and client setup in every file.
How:   pytest discovers conftest.py automatically; fixtures are injected by name.

Fixture Overview:
    ├── options:        Factory for WrapperOptions with keyword overrides
    ├── build_app:      Factory for a create_app() instance with the demo routes
    └── client_for:     HTTPX AsyncClient bound to an ASGI app (no server)

Demo routes (all under /api unless noted):
    empty, name, number, decimal, flag, items, enveloped, validation, problem,
    boom, unauthorized, custom, missing, text-error, raw, no-content, page,
    stream, echo (POST), secret (POST), excluded, binary, /pages/home, /app.js
"""

import os
from typing import Any, Dict

import pytest
from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.responses import HTMLResponse, PlainTextResponse, Response, StreamingResponse
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel

# Keep the process environment out of the options under test.
os.environ["LOG_LEVEL"] = "WARNING"
for _key in [k for k in os.environ if k.startswith("WRAPPER_")]:
    del os.environ[_key]

from apienvelope.config import WrapperOptions  # noqa: E402
from apienvelope.exceptions import (  # noqa: E402
    ApiException,
    ApiProblemDetailsException,
    UnauthorizedError,
)
from apienvelope.main import create_app  # noqa: E402
from apienvelope.markers import request_data_log_ignore, wrap_ignore  # noqa: E402
from apienvelope.schemas.envelope import ApiResponse, ValidationError  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# Demo Routes
# ══════════════════════════════════════════════════════════════════════════

demo_router = APIRouter()


class Item(BaseModel):
    name: str
    quantity: int = 1


@demo_router.get("/api/empty")
async def empty():
    return Response(status_code=200)


@demo_router.get("/api/name")
async def name():
    return "HueiFeng"


@demo_router.get("/api/number")
async def number():
    return 42


@demo_router.get("/api/decimal")
async def decimal_value():
    return PlainTextResponse("12.50")


@demo_router.get("/api/flag")
async def flag():
    return PlainTextResponse("true")


@demo_router.get("/api/items")
async def items():
    return [{"id": 1, "name": "pen"}, {"id": 2, "name": "ink"}]


@demo_router.get("/api/enveloped", response_model=ApiResponse)
async def enveloped():
    return ApiResponse(message="Custom message", result={"page": 1})


@demo_router.get("/api/validation")
async def validation():
    raise ApiException.from_validation_errors(
        [ValidationError(field="name", message="some error")]
    )


@demo_router.get("/api/problem")
async def problem():
    raise ApiProblemDetailsException("does not exist.", 404)


@demo_router.get("/api/boom")
async def boom():
    raise RuntimeError("kaboom")


@demo_router.get("/api/unauthorized")
async def unauthorized():
    raise UnauthorizedError()


@demo_router.get("/api/custom")
async def custom():
    raise ApiException(status_code=409, custom_error={"reason": "duplicate", "id": 7})


@demo_router.get("/api/conflict")
async def conflict():
    raise ApiException("Note already exists.", status_code=409, error_code="NoteExists")


@demo_router.get("/api/missing")
async def missing():
    raise HTTPException(status_code=404)


@demo_router.get("/api/text-error")
async def text_error():
    return PlainTextResponse("Bad thing happened", status_code=400)


@demo_router.get("/api/raw")
@wrap_ignore
async def raw():
    return PlainTextResponse("raw body")


@demo_router.get("/api/no-content")
async def no_content():
    return Response(status_code=204)


@demo_router.get("/api/page")
async def page():
    return HTMLResponse("<html><body><h1>Home</h1></body></html>")


@demo_router.get("/pages/home")
async def pages_home():
    return HTMLResponse("<html><body><h1>Home</h1></body></html>")


@demo_router.get("/api/stream")
async def stream():
    async def events():
        yield "data: one\n\n"
        yield "data: two\n\n"

    return StreamingResponse(events(), media_type="text/event-stream")


@demo_router.post("/api/echo")
async def echo(item: Item):
    return item


@demo_router.post("/api/secret")
@request_data_log_ignore
async def secret(item: Item):
    return {"stored": True}


@demo_router.get("/api/excluded")
async def excluded():
    return PlainTextResponse("excluded body")


@demo_router.get("/api/binary")
async def binary():
    return Response(b"\xff\xd8\xff\xe0\x00\x10JFIF", media_type="image/jpeg")


@demo_router.get("/app.js")
async def script():
    return PlainTextResponse("console.log(1);", media_type="application/javascript")


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures (created fresh for each test)
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def options():
    """
    Provides a WrapperOptions factory.

    Usage:
        def test_debug(options):
            opts = options(is_debug=True)
    """

    def _options(**overrides: Any) -> WrapperOptions:
        return WrapperOptions(**overrides)

    return _options


@pytest.fixture
def build_app(options):
    """
    Provides a factory for the full application plus the demo routes.

    What:    create_app() with explicit options, so CORS, GZip, the wrapper
             and the request-validation handler are all in place.
    """

    def _build(**overrides: Any) -> FastAPI:
        app = create_app(options(**overrides))
        app.include_router(demo_router)
        return app

    return _build


@pytest.fixture
def client_for():
    """
    Provides an HTTPX AsyncClient factory for any ASGI app.

    Usage:
        async with client_for(app) as client:
            response = await client.get("/api/empty")
    """

    def _client(app) -> AsyncClient:
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    return _client


@pytest.fixture
def sample_validation_body() -> Dict[str, Any]:
    """Expected plain-mode body for the one-field validation failure."""
    return {
        "isError": True,
        "error": {
            "message": "Your request parameters did not validate.",
            "code": "ModelStateError",
            "validationErrors": [{"field": "name", "message": "some error"}],
        },
    }


