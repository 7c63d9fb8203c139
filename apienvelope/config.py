"""
API Envelope — Configuration
==============================

What:  Read-only configuration for the response wrapper and for the demo service.
Why:   The wrapper's behavior (debug output, path rules, naming policy, logging
       toggles) must be fixed at startup and shared safely by every request.
How:   Pydantic Settings reads environment variables (or a .env file), validates
       them, and freezes the result. Exclude-path regexes are compiled here so a
       bad pattern fails at startup instead of on the first request.
Who:   ResponseWrapperMiddleware, PathFilter, the translators and create_app().
When:  Loaded once at import time; never mutated while requests are processed.

Environment examples:
    WRAPPER_IS_DEBUG=true
    WRAPPER_IS_API_ONLY=false
    WRAPPER_WRAP_API_PATH_PREFIX=/api
    WRAPPER_EXCLUDE_PATHS='[{"path": "/api/raw", "mode": "StartsWith"}]'
    WRAPPER_NAMING_POLICY=snake_case
"""

from enum import Enum
from typing import List, Tuple

import regex
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class ExcludeMode(str, Enum):
    """How an ExcludePath is compared against the request path."""

    STRICT = "Strict"
    STARTS_WITH = "StartsWith"
    REGEX = "Regex"


class NamingPolicy(str, Enum):
    """Field-casing policy applied to envelope field names on the wire."""

    CAMEL_CASE = "camelCase"
    PASCAL_CASE = "PascalCase"
    SNAKE_CASE = "snake_case"
    KEBAB_CASE = "kebab-case"
    PRESERVE = "preserve"


class ExcludePath(BaseModel):
    """
    A path that bypasses the wrapper entirely.

    Modes:
        Strict:     case-insensitive full-path equality
        StartsWith: case-insensitive path-segment prefix ("/api/raw" matches
                    "/api/raw/1" but not "/api/rawdata")
        Regex:      pattern searched in the path (bounded by regex_timeout)
    """

    path: str = Field(description="Path, path prefix or regular expression")
    mode: ExcludeMode = Field(default=ExcludeMode.STRICT)

    model_config = {"frozen": True}

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v:
            raise ValueError("Exclude path must not be empty")
        return v

    @model_validator(mode="after")
    def validate_pattern(self) -> "ExcludePath":
        # Compile eagerly so an invalid pattern is rejected with the options.
        if self.mode is ExcludeMode.REGEX:
            try:
                regex.compile(self.path)
            except regex.error as e:
                raise ValueError(f"Invalid exclude regex '{self.path}': {e}") from e
        return self


class WrapperOptions(BaseSettings):
    """
    Options bundle for one ResponseWrapperMiddleware instance.

    All fields default to the behavior most API projects want: every path is
    an API path, null envelope fields are dropped, failures are rendered as
    RFC 7807 problem details and both access and exception logging are on.
    """

    # ── Error output ──────────────────────────────────────────────────────
    # What: Include exception messages and tracebacks in failure responses
    # Why False: Tracebacks leak file paths, library versions and code
    # Trade-off: True makes local debugging easy; never enable in production
    is_debug: bool = Field(default=False)

    # What: Render failures as plain ApiErrorResponse envelopes
    # Why False: RFC 7807 problem details are understood by generic clients
    disable_problem_details: bool = Field(default=False)

    # ── Path rules ────────────────────────────────────────────────────────
    # What: Treat every path except static assets (.js/.html/.css) as an API path
    # Why True: Most services behind this middleware serve nothing but JSON
    # Trade-off: Sites that also serve pages set False and rely on the prefix
    is_api_only: bool = Field(default=True)

    # What: Path prefix that marks API routes when is_api_only is False
    # Format: Rooted path, compared segment-wise and case-insensitively
    wrap_api_path_prefix: str = Field(default="/api")

    # What: Paths delivered byte-for-byte, checked in list order
    # Format: JSON list in the environment, e.g. [{"path": "/api/raw", "mode": "StartsWith"}]
    exclude_paths: List[ExcludePath] = Field(default_factory=list)

    # What: Documentation and schema endpoints, never wrapped
    reserved_path_prefixes: Tuple[str, ...] = Field(
        default=("/swagger", "/docs", "/redoc", "/openapi.json")
    )

    # What: Upper bound (seconds) for evaluating one Regex exclude path
    # Why 1s: A catastrophic pattern on a hostile path must not hold a worker
    # Valid range: just above 0 to 10 seconds
    regex_timeout: float = Field(default=1.0, gt=0, le=10)

    # ── Body handling ─────────────────────────────────────────────────────
    # What: Wrap HTML bodies as a string result instead of answering 404
    # Trade-off: Only useful when is_api_only is False and handlers return markup
    bypass_html_validation: bool = Field(default=False)

    # What: Deliver successful bodies unwrapped; failures are still translated
    ignore_success_wrap: bool = Field(default=False)

    # ── Envelope shape ────────────────────────────────────────────────────
    # What: Add "statusCode" / "isError" to success envelopes
    # Why False: The HTTP status already carries both; clients rarely need them
    show_status_code: bool = Field(default=False)
    show_error_flag: bool = Field(default=False)

    # What: Drop null envelope fields from the JSON
    # Trade-off: Smaller bodies, but clients must treat missing and null alike
    ignore_null_fields: bool = Field(default=True)

    # What: Casing of envelope field names on the wire (payloads are never renamed)
    # Options: camelCase, PascalCase, snake_case, kebab-case, preserve
    naming_policy: NamingPolicy = Field(default=NamingPolicy.CAMEL_CASE)

    # ── Logging ───────────────────────────────────────────────────────────
    # What: One INFO access line per wrapped request ("apienvelope.access")
    enable_response_logging: bool = Field(default=True)

    # What: One ERROR line with traceback per translated failure
    enable_exception_logging: bool = Field(default=True)

    # What: Include the request body (POST/PUT/PATCH) in the access line
    # Trade-off: Useful for tracing, but bodies may hold personal data;
    #            mark sensitive endpoints with @request_data_log_ignore
    log_request_data: bool = Field(default=True)

    # What: Keep logging the request body when the request failed
    log_request_data_on_exception: bool = Field(default=True)

    model_config = {
        "env_prefix": "WRAPPER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "frozen": True,
    }

    @field_validator("wrap_api_path_prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        """The prefix is compared segment-wise, so it must be rooted."""
        if not v.startswith("/"):
            raise ValueError(f"wrap_api_path_prefix must start with '/': '{v}'")
        return v


class Settings(BaseSettings):
    """
    Settings for the demo service assembled by create_app().

    These are separate from WrapperOptions because they describe the process
    (log level, bind address, CORS) rather than the response pipeline.
    """

    # ── Server ────────────────────────────────────────────────────────────
    # What: Bind address reported at startup (uvicorn receives the same values)
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=8000, ge=1024, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    # Comma-separated list of allowed origins
    cors_origins: str = Field(default="http://localhost:3000")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper


# Singletons: configuration is immutable after startup.
settings = Settings()
wrapper_options = WrapperOptions()
