"""
API Envelope — Envelope Serializer
====================================

What:  Turns envelope models into wire bytes (JSON or problem XML) and back.
Why:   Every envelope must serialize byte-for-byte reproducibly for a given
       naming policy and null policy, independent of the model aliases.
How:   Walks the model fields in declaration order, renames envelope field names
       through the naming policy, drops nulls when configured and hands payload
       values (result, innerError) to pydantic-core's jsonable conversion as-is.
Who:   EnvelopeBuilder and the failure translators.

Naming policies (field "validation_errors"):
    camelCase   → validationErrors
    PascalCase  → ValidationErrors
    snake_case  → validation_errors
    kebab-case  → validation-errors
    preserve    → validation_errors
"""

import json
from decimal import Decimal
from typing import Any, Dict, Optional, Type, TypeVar, Union, get_args
from xml.etree import ElementTree as ET

from pydantic_core import to_jsonable_python

from apienvelope.config import NamingPolicy
from apienvelope.schemas.envelope import EnvelopeModel

ModelT = TypeVar("ModelT", bound=EnvelopeModel)

PROBLEM_XML_NAMESPACE = "urn:ietf:rfc:7807"


def convert_name(name: str, policy: NamingPolicy) -> str:
    """Apply a naming policy to a snake_case field name."""
    words = [w for w in name.split("_") if w]
    if policy is NamingPolicy.PRESERVE or not words:
        return name
    if policy is NamingPolicy.CAMEL_CASE:
        return words[0].lower() + "".join(w.capitalize() for w in words[1:])
    if policy is NamingPolicy.PASCAL_CASE:
        return "".join(w.capitalize() for w in words)
    if policy is NamingPolicy.KEBAB_CASE:
        return "-".join(w.lower() for w in words)
    return "_".join(w.lower() for w in words)


def _jsonable(value: Any) -> Any:
    # pydantic-core renders Decimal as a string; envelopes carry numbers.
    if isinstance(value, Decimal):
        return float(value)
    return to_jsonable_python(value)


def _nested_model(annotation: Any) -> Optional[Type[EnvelopeModel]]:
    """Find the envelope model inside an annotation like Optional[List[X]]."""
    if isinstance(annotation, type) and issubclass(annotation, EnvelopeModel):
        return annotation
    for arg in get_args(annotation):
        found = _nested_model(arg)
        if found is not None:
            return found
    return None


class JsonSerializer:
    """
    Envelope encoder/decoder bound to one naming policy and one null policy.

    Instances hold no mutable state and are shared by all requests.
    """

    def __init__(
        self,
        naming_policy: NamingPolicy = NamingPolicy.CAMEL_CASE,
        ignore_null: bool = True,
    ):
        self.naming_policy = naming_policy
        self.ignore_null = ignore_null

    def wire_name(self, model_type: Type[EnvelopeModel], field_name: str) -> str:
        if field_name in model_type.verbatim_fields:
            return field_name
        return convert_name(field_name, self.naming_policy)

    # ── Encoding ──────────────────────────────────────────────────────────

    def to_dict(self, model: EnvelopeModel) -> Dict[str, Any]:
        model_type = type(model)
        data: Dict[str, Any] = {}
        for name in model_type.model_fields:
            value = getattr(model, name)
            if value is None and self.ignore_null:
                continue
            data[self.wire_name(model_type, name)] = self._encode_value(value)
        return data

    def _encode_value(self, value: Any) -> Any:
        if isinstance(value, EnvelopeModel):
            return self.to_dict(value)
        if isinstance(value, (list, tuple)):
            return [self._encode_value(item) for item in value]
        return _jsonable(value)

    def dumps(self, model: EnvelopeModel) -> bytes:
        """Compact UTF-8 JSON for an envelope model."""
        return json.dumps(
            self.to_dict(model), ensure_ascii=False, separators=(",", ":")
        ).encode("utf-8")

    def dumps_xml(self, model: EnvelopeModel) -> bytes:
        """Problem XML document (RFC 7807 appendix A) for an envelope model."""
        root = ET.Element("problem", {"xmlns": PROBLEM_XML_NAMESPACE})
        _append_xml(root, self.to_dict(model))
        return ET.tostring(root, encoding="utf-8")

    # ── Decoding ──────────────────────────────────────────────────────────

    def loads(
        self, data: Union[str, bytes, Dict[str, Any]], model_type: Type[ModelT]
    ) -> ModelT:
        """Decode wire JSON produced under this serializer's policies."""
        if isinstance(data, (str, bytes, bytearray)):
            data = json.loads(data)
        return model_type.model_validate(self._decode_fields(data, model_type))

    def _decode_fields(
        self, data: Dict[str, Any], model_type: Type[EnvelopeModel]
    ) -> Dict[str, Any]:
        names = {self.wire_name(model_type, name): name for name in model_type.model_fields}
        decoded: Dict[str, Any] = {}
        for key, value in data.items():
            name = names.get(key)
            if name is None:
                continue
            nested = _nested_model(model_type.model_fields[name].annotation)
            if nested is not None and isinstance(value, dict):
                value = self._decode_fields(value, nested)
            elif nested is not None and isinstance(value, list):
                value = [
                    self._decode_fields(item, nested) if isinstance(item, dict) else item
                    for item in value
                ]
            decoded[name] = value
        return decoded


def _append_xml(parent: ET.Element, value: Any) -> None:
    if isinstance(value, dict):
        for key, item in value.items():
            _append_xml(ET.SubElement(parent, str(key)), item)
    elif isinstance(value, list):
        for item in value:
            _append_xml(ET.SubElement(parent, "value"), item)
    elif isinstance(value, bool):
        parent.text = "true" if value else "false"
    elif value is not None:
        parent.text = str(value)
