"""
API Envelope — Body Classifier
================================

What:  Inspects a buffered response body and decides what shape it has.
Why:   The right transformation depends on the shape: an object or array is
       wrapped as-is, a scalar is coerced to its typed value, an HTML page on an
       API path is a misrouted page request, and a body that already is an
       envelope must not be wrapped twice.
How:   Pure functions over the decoded body text. No I/O, no options.

Shapes:
    EMPTY      → blank body
    JSON       → JSON object or array
    ENVELOPED  → JSON object or array from a handler that declares ApiResponse
    HTML       → non-JSON text that looks like markup
    SCALAR     → everything else (numbers, booleans, strings, JSON null)

Scalar coercion precedence (first match wins):
    integer → decimal → boolean → quoted-string unwrap → raw text
"""

import json
import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Tuple

_WHOLE_NUMBER = re.compile(r"^[+-]?\d+$")
_DECIMAL_NUMBER = re.compile(r"^[+-]?(\d+\.\d*|\.\d+)$")
_DOCTYPE = re.compile(r"^<!doctype\s+html", re.IGNORECASE)
_TAG_PAIR = re.compile(r"<\s*([a-zA-Z][a-zA-Z0-9-]*)\b[^>]*>.*?<\s*/\s*\1\s*>", re.DOTALL)


class BodyKind(str, Enum):
    EMPTY = "empty"
    SCALAR = "scalar"
    JSON = "json"
    HTML = "html"
    ENVELOPED = "enveloped"


@dataclass(frozen=True)
class ClassifiedBody:
    """
    A classified response body.

    Attributes:
        kind:     Shape of the body
        text:     Decoded body text
        is_json:  Whether the text parsed as JSON (any root, scalars included)
        document: Parsed JSON value when is_json, else None
    """

    kind: BodyKind
    text: str
    is_json: bool = False
    document: Any = None


def is_request_successful(status_code: int) -> bool:
    return 200 <= status_code < 400


def parse_json(text: str) -> Tuple[bool, Any]:
    """Returns (parsed, value); (False, None) for blank or invalid JSON."""
    if not text.strip():
        return False, None
    try:
        return True, json.loads(text)
    except ValueError:
        return False, None


def looks_like_html(text: str) -> bool:
    """
    Markup test for non-JSON bodies: a doctype, or a matching open/close tag
    pair in text that starts with "<".
    """
    stripped = text.lstrip()
    if not stripped.startswith("<"):
        return False
    return bool(_DOCTYPE.match(stripped) or _TAG_PAIR.search(stripped))


def classify_body(text: str, declared_envelope: bool = False) -> ClassifiedBody:
    """
    Classify a decoded response body.

    Args:
        text:              Decoded body text
        declared_envelope: The handler's declared return type is ApiResponse
    """
    if not text.strip():
        return ClassifiedBody(kind=BodyKind.EMPTY, text=text)

    is_json, document = parse_json(text)
    if is_json and isinstance(document, (dict, list)):
        kind = BodyKind.ENVELOPED if declared_envelope else BodyKind.JSON
        return ClassifiedBody(kind=kind, text=text, is_json=True, document=document)

    if not is_json and looks_like_html(text):
        return ClassifiedBody(kind=BodyKind.HTML, text=text)

    return ClassifiedBody(kind=BodyKind.SCALAR, text=text, is_json=is_json, document=document)


def coerce_single_value(text: str) -> Tuple[bool, Any]:
    """
    Coerce scalar body text to a typed value.

        "42"       → (True, 42)
        "-1.50"    → (True, Decimal("-1.50"))
        "True"     → (True, True)
        '"hi"'     → (True, "hi")
        "hello"    → (False, "hello")
    """
    value = text.strip()

    if _WHOLE_NUMBER.match(value):
        return True, int(value)

    if _DECIMAL_NUMBER.match(value):
        return True, Decimal(value)

    if value.lower() in ("true", "false"):
        return True, value.lower() == "true"

    if '"' in value:
        if len(value) >= 2 and value[0] == value[-1] == '"':
            # A JSON string literal: decode escapes properly.
            is_json, decoded = parse_json(value)
            if is_json and isinstance(decoded, str):
                return True, decoded
        return True, value.replace('"', "")

    return False, text
