"""
API Envelope — Problem Details Translator Unit Tests
======================================================

What:  Tests for RFC 7807 documents built from failures and error bodies.
How:   ProblemDetailsTranslator over explicit options; no application.

Test Strategy:
    ✅ Carried problem documents are used as-is, instance filled from path
    ✅ Validation / structured / auth failures map to their own status
    ✅ Unknown failures: generic detail, or debug errors block + help link
    ✅ Error bodies: JSON passed through, text becomes detail
    ✅ Accept negotiation between problem+json and problem+xml
"""

import json

import pytest

from apienvelope import messages
from apienvelope.constants import PROBLEM_JSON_MEDIA_TYPE, PROBLEM_XML_MEDIA_TYPE
from apienvelope.exceptions import ApiException, ApiProblemDetailsException, UnauthorizedError
from apienvelope.schemas.envelope import ProblemDetails, ValidationError
from apienvelope.serialization import JsonSerializer
from apienvelope.services.body_classifier import classify_body
from apienvelope.services.problem_details import (
    ProblemDetailsTranslator,
    help_link,
    negotiate_problem_media_type,
)


def raised(exc: BaseException) -> BaseException:
    try:
        raise exc
    except BaseException as caught:
        return caught


class DocumentedError(Exception):
    help_link = "https://errors.example.com/documented"


@pytest.fixture
def translator(options):
    def _translator(**overrides):
        opts = options(**overrides)
        return ProblemDetailsTranslator(opts, JsonSerializer(opts.naming_policy, opts.ignore_null_fields))

    return _translator


class TestFromException:
    """Thrown failures."""

    def test_carried_problem(self, translator):
        """Title and status come from the exception; instance is the path."""
        result = translator().from_exception(raised(ApiProblemDetailsException("does not exist.", 404)), "/api/x")

        assert result.status_code == 404
        assert result.problem.title == "does not exist."
        assert result.problem.detail is None
        assert result.problem.instance == "/api/x"
        assert result.problem.is_error is True

    def test_existing_instance_kept(self, translator):
        """An instance set by the thrower is not overwritten."""
        problem = ProblemDetails.for_status(409, instance="/orders/7")
        result = translator().from_exception(raised(ApiProblemDetailsException(problem=problem)), "/api/x")
        assert result.problem.instance == "/orders/7"

    def test_validation(self, translator):
        """Validation failures keep their status and error list."""
        exc = ApiException.from_validation_errors([ValidationError(field="name", message="required")])
        result = translator().from_exception(raised(exc), "/api/x")

        assert result.status_code == 422
        assert result.problem.detail == "Your request parameters did not validate."
        assert result.problem.validation_errors == [ValidationError(field="name", message="required")]

    def test_structured(self, translator):
        """Structured failures keep their status; the message is the detail."""
        result = translator().from_exception(raised(ApiException("Already there.", 409)), "/api/x")
        assert result.status_code == 409
        assert result.problem.detail == "Already there."
        assert result.problem.title == "Conflict"

    def test_structured_reference_link_is_type(self, translator):
        """A reference link documents the problem type."""
        exc = ApiException("Quota exceeded.", 429, reference_link="https://docs.example.com/errors/quota")
        result = translator().from_exception(raised(exc), "/api/x")

        assert result.problem.type == "https://docs.example.com/errors/quota"
        assert result.problem.title == "Too Many Requests"
        assert result.problem.instance == "/api/x"

    def test_auth(self, translator):
        """Authorization failures are 401 with the fixed text."""
        result = translator().from_exception(raised(UnauthorizedError()), "/api/x")
        assert result.status_code == 401
        assert result.problem.detail == messages.UNAUTHORIZED

    def test_unknown_without_debug(self, translator):
        """Outside debug mode the detail is generic and errors is absent."""
        result = translator().from_exception(raised(RuntimeError("secret")), "/api/x")

        assert result.status_code == 500
        assert result.problem.detail == messages.UNHANDLED
        assert result.problem.errors is None
        assert result.problem.type == "https://httpstatuses.com/500"

    def test_unknown_with_debug(self, translator):
        """Debug mode attaches type, message, source and traceback."""
        result = translator(is_debug=True).from_exception(raised(RuntimeError("kaboom")), "/api/x")

        errors = result.problem.errors
        assert result.problem.detail == "kaboom"
        assert errors.type == "RuntimeError"
        assert errors.message == "kaboom"
        assert errors.source == __name__
        assert "Traceback" in errors.raw
        assert result.problem.instance == "/api/x"

    def test_debug_help_link_as_instance(self, translator):
        """A well-formed help link becomes the instance."""
        result = translator(is_debug=True).from_exception(raised(DocumentedError("x")), "/api/x")
        assert result.problem.instance == "https://errors.example.com/documented"


class TestHelpLink:
    """Tests for help_link()."""

    def test_absolute_uri(self):
        assert help_link(DocumentedError()) == "https://errors.example.com/documented"

    def test_relative_uri_rejected(self):
        exc = RuntimeError()
        exc.help_link = "/docs/errors"
        assert help_link(exc) is None

    def test_missing(self):
        assert help_link(RuntimeError()) is None


class TestFromBody:
    """Unsuccessful responses the handler wrote itself."""

    def test_json_body_passed_through(self, translator):
        """A JSON error body is delivered unchanged."""
        body = classify_body('{"detail":"Not Found"}')
        result = translator().from_body(body, 404, "/api/x")

        assert result.raw_document == b'{"detail":"Not Found"}'
        assert result.problem is None

    def test_text_body_becomes_detail(self, translator):
        """Plain text is the detail of a synthesized document."""
        result = translator().from_body(classify_body("Bad thing"), 400, "/api/x")

        assert result.problem.detail == "Bad thing"
        assert result.problem.title == "Bad Request"
        assert result.problem.status == 400
        assert result.problem.instance == "/api/x"

    def test_json_scalar_body_passed_through(self, translator):
        """Any valid JSON error body is delivered unchanged, scalars included."""
        result = translator().from_body(classify_body('"quota exceeded"'), 429, "/api/x")

        assert result.raw_document == b'"quota exceeded"'
        assert result.problem is None

    def test_empty_body(self, translator):
        """An empty body gives a document without detail."""
        result = translator().from_body(classify_body(""), 404, "/api/x")
        assert result.problem.detail is None


class TestRender:
    """Content negotiation."""

    @pytest.mark.parametrize(
        "accept,expected",
        [
            (None, PROBLEM_JSON_MEDIA_TYPE),
            ("", PROBLEM_JSON_MEDIA_TYPE),
            ("application/problem+xml", PROBLEM_XML_MEDIA_TYPE),
            ("application/xml", PROBLEM_XML_MEDIA_TYPE),
            ("application/xml;q=0.5, application/json", PROBLEM_JSON_MEDIA_TYPE),
            ("text/html, */*;q=0.8", PROBLEM_JSON_MEDIA_TYPE),
            ("application/xml;q=0", PROBLEM_JSON_MEDIA_TYPE),
            (
                "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
                PROBLEM_JSON_MEDIA_TYPE,
            ),
            ("application/xml, */*", PROBLEM_JSON_MEDIA_TYPE),
            ("application/json;q=0.5, application/problem+xml", PROBLEM_XML_MEDIA_TYPE),
        ],
    )
    def test_negotiation(self, accept, expected):
        """XML only when the client explicitly prefers it and sends no wildcard."""
        assert negotiate_problem_media_type(accept) == expected

    def test_render_json(self, translator):
        """JSON rendering uses the serializer."""
        t = translator()
        result = t.from_exception(raised(ApiProblemDetailsException("gone", 410)), "/api/x")
        content, media_type = t.render(result, "application/json")

        assert media_type == PROBLEM_JSON_MEDIA_TYPE
        assert json.loads(content) == {
            "type": "https://httpstatuses.com/410",
            "title": "gone",
            "status": 410,
            "instance": "/api/x",
            "isError": True,
        }

    def test_render_xml(self, translator):
        """XML rendering produces a problem document."""
        t = translator()
        result = t.from_exception(raised(ApiProblemDetailsException("gone", 410)), "/api/x")
        content, media_type = t.render(result, "application/problem+xml")

        assert media_type == PROBLEM_XML_MEDIA_TYPE
        assert b"<title>gone</title>" in content

    def test_render_raw_document(self, translator):
        """Raw documents are always problem+json."""
        t = translator()
        result = t.from_body(classify_body('{"a":1}'), 400, "/api/x")
        assert t.render(result, "application/xml") == (b'{"a":1}', PROBLEM_JSON_MEDIA_TYPE)
