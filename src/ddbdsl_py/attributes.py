"""Conversion between native Python values and DynamoDB attribute values.

The wire encoding itself is boto3's; this module only normalizes the edges
(floats become ``Decimal`` on the way in, ``Binary`` becomes ``bytes`` on the way
out) so that domain mappers can work with plain Python values.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from enum import StrEnum
from typing import Any

from boto3.dynamodb.types import Binary, TypeDeserializer, TypeSerializer

from .errors import ValidationError

type AttributeValue = dict[str, Any]
type Attributes = Mapping[str, AttributeValue]


class AttributeType(StrEnum):
    STRING = "S"
    NUMBER = "N"
    BINARY = "B"


_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def _normalize(value: Any) -> Any:
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, Mapping):
        return {str(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return {_normalize(v) for v in value}
    return value


def _unwrap(value: Any) -> Any:
    if isinstance(value, Binary):
        return bytes(value.value)
    if isinstance(value, dict):
        return {k: _unwrap(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_unwrap(v) for v in value]
    if isinstance(value, set):
        return {_unwrap(v) for v in value}
    return value


def to_attribute_value(value: Any) -> AttributeValue:
    try:
        return _serializer.serialize(_normalize(value))
    except TypeError as err:
        raise ValidationError(f"unsupported attribute value: {err}") from err


def from_attribute_value(av: Mapping[str, Any]) -> Any:
    return _unwrap(_deserializer.deserialize(dict(av)))


def to_item(values: Mapping[str, Any]) -> dict[str, AttributeValue]:
    return {str(name): to_attribute_value(value) for name, value in values.items()}


def from_item(item: Attributes) -> dict[str, Any]:
    return {name: from_attribute_value(av) for name, av in item.items()}


def key_type_for_value(value: Any) -> AttributeType:
    if isinstance(value, str):
        return AttributeType.STRING
    if isinstance(value, (bytes, bytearray, Binary)):
        return AttributeType.BINARY
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return AttributeType.NUMBER
    raise ValidationError(f"key values must be str, number or bytes (got {type(value).__name__})")
