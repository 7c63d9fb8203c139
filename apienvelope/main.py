"""
API Envelope — FastAPI Application Factory
============================================

What:  Creates a FastAPI application with the response wrapper installed.
Why:   Centralizes middleware registration, the request-validation handler,
       route mounting and lifecycle management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn (uvicorn apienvelope.main:app) and by the tests.
When:  Once at server startup; the returned app handles all subsequent requests.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────────┐ ┌──────────┐ ┌─────────────────┐  │
    │  │     CORS     │→│   GZip   │→│ ResponseWrapper │  │
    │  └──────────────┘ └──────────┘ └─────────────────┘  │
    │                                                     │
    │  Routes:                                            │
    │  ┌──────────────┐                                   │
    │  │ GET /health  │                                   │
    │  └──────────────┘                                   │
    │                                                     │
    │  Exception Handlers:                                │
    │  ┌──────────────────────────────────────────────┐   │
    │  │ RequestValidationError → ApiException /      │   │
    │  │   ApiProblemDetailsException (per mode)      │   │
    │  └──────────────────────────────────────────────┘   │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Log the active wrapper mode

    Shutdown:
    1. Log shutdown complete
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from apienvelope import __version__
from apienvelope.config import WrapperOptions, settings, wrapper_options
from apienvelope.exceptions import ApiException, ApiProblemDetailsException
from apienvelope.middleware import ResponseWrapperMiddleware
from apienvelope.routes import health
from apienvelope.services.failures import validation_errors_from_request

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    What:    Sets up logging with a consistent format across all modules.
    When:    Called once during app startup, before anything is logged.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s

    The access lines of the wrapper go to the "apienvelope.access" logger and
    can be routed separately from failure lines.
    """
    log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
        force=True,
    )

    # The wrapper logs every request itself.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: configure logging and report the wrapper mode. Shutdown: log it."""
    setup_logging()
    options: WrapperOptions = app.state.wrapper_options
    logger.info("=" * 60)
    logger.info("API Envelope %s starting up...", __version__)
    logger.info(
        "Failure format: %s | debug: %s | api only: %s",
        "plain envelope" if options.disable_problem_details else "problem details",
        options.is_debug,
        options.is_api_only,
    )
    if options.is_debug:
        logger.warning("Debug mode is on: exception details are returned to clients.")
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI, options: WrapperOptions) -> None:
    """
    Hand FastAPI's request validation failures to the response wrapper.

    FastAPI answers a RequestValidationError with its own 422 body. Re-raising
    it as the failure type of the active mode lets the wrapper render it like
    any other validation failure:
        plain mode    → ApiException(validation_errors=[...])
        problem mode  → ApiProblemDetailsException with validationErrors
    """

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = validation_errors_from_request(exc)
        if options.disable_problem_details:
            raise ApiException.from_validation_errors(errors) from exc
        raise ApiProblemDetailsException.from_validation_errors(errors) from exc


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(options: Optional[WrapperOptions] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        options: Wrapper options (defaults to the environment-loaded singleton)

    Returns: Fully configured FastAPI instance ready to receive requests.
    """
    options = options or wrapper_options

    app = FastAPI(
        title="API Envelope",
        description=(
            "Every response wrapped in one envelope: success payloads under "
            "`result`, failures as problem details or error envelopes."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.wrapper_options = options

    # ── Register Middleware ───────────────────────────────────────────────
    # Middleware executes in REVERSE order of addition: the wrapper is added
    # first so it runs innermost, next to the routes.
    app.add_middleware(ResponseWrapperMiddleware, options=options)

    app.add_middleware(GZipMiddleware, minimum_size=500)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app, options)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(health.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
# uvicorn expects `apienvelope.main:app` to be importable
app = create_app()
