"""
API Envelope — Body Classifier Unit Tests
===========================================

What:  Tests for body shape detection and scalar coercion.
Why:   The shape decides the transformation; a misclassified body is wrapped
       wrongly or not at all.
How:   Pure function calls, no application.

Test Strategy:
    ✅ Empty, JSON object/array, declared envelope, HTML, scalars
    ✅ Coercion precedence: integer → decimal → boolean → quoted string
    ✅ Uncoercible text is returned unchanged
"""

from decimal import Decimal

import pytest

from apienvelope.services.body_classifier import (
    BodyKind,
    classify_body,
    coerce_single_value,
    is_request_successful,
    looks_like_html,
    parse_json,
)


class TestIsRequestSuccessful:
    """Success means 200-399."""

    @pytest.mark.parametrize("status", [200, 201, 204, 301, 399])
    def test_success_range(self, status):
        """2xx and 3xx are successful."""
        assert is_request_successful(status)

    @pytest.mark.parametrize("status", [100, 199, 400, 404, 500])
    def test_failure_range(self, status):
        """Everything else is not."""
        assert not is_request_successful(status)


class TestClassifyBody:
    """Tests for classify_body()."""

    def test_blank_body_is_empty(self):
        """Whitespace-only bodies are empty."""
        assert classify_body("  \n").kind is BodyKind.EMPTY

    def test_object_is_json(self):
        """A JSON object keeps its parsed document."""
        body = classify_body('{"id": 1}')
        assert body.kind is BodyKind.JSON
        assert body.document == {"id": 1}

    def test_array_is_json(self):
        """A JSON array is a JSON body too."""
        assert classify_body("[1, 2]").kind is BodyKind.JSON

    def test_declared_envelope(self):
        """An object from a handler declaring the envelope is not wrapped again."""
        body = classify_body('{"message": "ok"}', declared_envelope=True)
        assert body.kind is BodyKind.ENVELOPED

    def test_declared_envelope_ignored_for_scalars(self):
        """Only objects and arrays can be an envelope."""
        assert classify_body("42", declared_envelope=True).kind is BodyKind.SCALAR

    def test_html_document(self):
        """Markup with a matching tag pair is HTML."""
        assert classify_body("<html><body>hi</body></html>").kind is BodyKind.HTML

    def test_json_number_is_scalar(self):
        """A JSON number is a scalar with its parsed value kept."""
        body = classify_body("42")
        assert body.kind is BodyKind.SCALAR
        assert body.is_json is True
        assert body.document == 42

    def test_plain_text_is_scalar(self):
        """Non-JSON text is a scalar that did not parse."""
        body = classify_body("hello world")
        assert body.kind is BodyKind.SCALAR
        assert body.is_json is False

    def test_json_null_is_scalar(self):
        """JSON null parses, with no document."""
        body = classify_body("null")
        assert body.kind is BodyKind.SCALAR
        assert body.is_json is True
        assert body.document is None


class TestLooksLikeHtml:
    """Tests for the markup heuristic."""

    def test_doctype(self):
        """A doctype alone is enough."""
        assert looks_like_html("<!DOCTYPE html><p>x")

    def test_tag_pair(self):
        """A matching open/close pair is markup."""
        assert looks_like_html("<div class='a'>x</div>")

    def test_text_mentioning_tags(self):
        """Text that does not start with "<" is not markup."""
        assert not looks_like_html("use <b>bold</b> here")

    def test_unclosed_tag(self):
        """A lone angle bracket is not markup."""
        assert not looks_like_html("<3 you")


class TestParseJson:
    """Tests for parse_json()."""

    def test_valid(self):
        """Valid JSON returns (True, value)."""
        assert parse_json('{"a": [1]}') == (True, {"a": [1]})

    def test_invalid(self):
        """Invalid JSON returns (False, None)."""
        assert parse_json("{not json") == (False, None)

    def test_blank(self):
        """Blank text is not JSON."""
        assert parse_json("") == (False, None)


class TestCoerceSingleValue:
    """Coercion precedence: integer → decimal → boolean → quoted string."""

    def test_integer(self):
        """Whole numbers become int."""
        assert coerce_single_value("42") == (True, 42)

    def test_negative_integer(self):
        """Signs are kept."""
        assert coerce_single_value("-7") == (True, -7)

    def test_decimal(self):
        """Fractional numbers become Decimal, keeping their exact digits."""
        is_coerced, value = coerce_single_value("12.50")
        assert is_coerced is True
        assert value == Decimal("12.50")
        assert isinstance(value, Decimal)

    @pytest.mark.parametrize("text,expected", [("true", True), ("False", False), ("TRUE", True)])
    def test_boolean(self, text, expected):
        """Booleans are matched case-insensitively."""
        assert coerce_single_value(text) == (True, expected)

    def test_quoted_string(self):
        """A JSON string literal is unwrapped."""
        assert coerce_single_value('"HueiFeng"') == (True, "HueiFeng")

    def test_quoted_string_with_escapes(self):
        """Escapes inside a string literal are decoded."""
        assert coerce_single_value('"line\\nbreak"') == (True, "line\nbreak")

    def test_stray_quotes_removed(self):
        """Quotes that do not form a literal are stripped."""
        assert coerce_single_value('say "hi"') == (True, "say hi")

    def test_uncoercible_text(self):
        """Anything else is returned unchanged and flagged as not coerced."""
        assert coerce_single_value("hello") == (False, "hello")

    def test_integer_wins_over_decimal(self):
        """"10" is an int, not Decimal("10")."""
        _, value = coerce_single_value("10")
        assert type(value) is int
