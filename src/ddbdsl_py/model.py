from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import MISSING, dataclass, field, fields, is_dataclass
from decimal import Decimal
from types import UnionType
from typing import Any, Protocol, Union, cast, get_args, get_origin, get_type_hints, overload

from . import attributes as _attributes
from .attributes import Attributes, AttributeType, AttributeValue
from .errors import ValidationError


class TableDefinitionError(ValueError):
    pass


class AttributeConverter(Protocol):
    def to_dynamodb(self, value: Any) -> Any: ...

    def from_dynamodb(self, value: Any) -> Any: ...


@dataclass(frozen=True)
class AttributeDefinition:
    python_name: str
    attribute_name: str
    roles: tuple[str, ...]
    omitempty: bool
    converter: AttributeConverter | None = None


@dataclass(frozen=True)
class KeyAttribute:
    name: str
    type: AttributeType = AttributeType.STRING


@overload
def table_field(
    *,
    name: str | None = None,
    roles: Sequence[str] | None = None,
    omitempty: bool = False,
    converter: AttributeConverter | None = None,
    ignore: bool = False,
) -> Any: ...


@overload
def table_field(
    *,
    name: str | None = None,
    roles: Sequence[str] | None = None,
    omitempty: bool = False,
    converter: AttributeConverter | None = None,
    ignore: bool = False,
    default: Any,
) -> Any: ...


@overload
def table_field(
    *,
    name: str | None = None,
    roles: Sequence[str] | None = None,
    omitempty: bool = False,
    converter: AttributeConverter | None = None,
    ignore: bool = False,
    default_factory: Any,
) -> Any: ...


def table_field(
    *,
    name: str | None = None,
    roles: Sequence[str] | None = None,
    omitempty: bool = False,
    converter: AttributeConverter | None = None,
    ignore: bool = False,
    default: Any = MISSING,
    default_factory: Any = MISSING,
) -> Any:
    if default is not MISSING and default_factory is not MISSING:
        raise ValueError("table_field: cannot set both default and default_factory")

    opts: dict[str, Any] = {
        "omitempty": omitempty,
        "converter": converter,
        "ignore": ignore,
    }
    if name is not None:
        opts["name"] = name
    if roles is not None:
        opts["roles"] = list(roles)

    return field(default=default, default_factory=default_factory, metadata={"ddbdsl": opts})


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if value is False:
        return True
    if value == 0:
        return True
    if isinstance(value, (str, bytes, bytearray)) and len(value) == 0:
        return True
    if isinstance(value, (list, dict, set, tuple)) and len(value) == 0:
        return True
    return False


def _unwrap_optional(annotation: Any) -> Any:
    if get_origin(annotation) not in (Union, UnionType):
        return annotation
    args = get_args(annotation)
    non_none = [a for a in args if a is not type(None)]  # noqa: E721
    if len(args) == 2 and len(non_none) == 1:
        return non_none[0]
    return annotation


def _coerce_value(value: Any, annotation: Any) -> Any:
    if value is None:
        return None

    annotation = _unwrap_optional(annotation)
    if annotation is int and isinstance(value, Decimal):
        return int(value)
    if annotation is float and isinstance(value, Decimal):
        return float(value)

    origin = get_origin(annotation)
    if origin is set and isinstance(value, set):
        (elem_type,) = get_args(annotation) or (Any,)
        return {_coerce_value(v, elem_type) for v in value}
    if origin is list and isinstance(value, list):
        (elem_type,) = get_args(annotation) or (Any,)
        return [_coerce_value(v, elem_type) for v in value]

    return value


def _resolve_hints(model_type: type[Any]) -> dict[str, Any]:
    try:
        return get_type_hints(model_type)
    except Exception:
        return dict(getattr(model_type, "__annotations__", {}))


def _key_type_for_annotation(field_name: str, annotation: Any) -> AttributeType:
    annotation = _unwrap_optional(annotation)
    if annotation is str:
        return AttributeType.STRING
    if annotation in {int, float, Decimal}:
        return AttributeType.NUMBER
    if annotation in {bytes, bytearray}:
        return AttributeType.BINARY
    raise TableDefinitionError(f"key attribute must be S/N/B: {field_name} (got {annotation})")


class DataclassItemMapper[T]:
    def __init__(self, model_type: type[T], attributes: Mapping[str, AttributeDefinition]) -> None:
        self._model_type = model_type
        self._attributes = dict(attributes)
        self._hints = _resolve_hints(model_type)

    @property
    def attributes(self) -> Mapping[str, AttributeDefinition]:
        return self._attributes

    def to_item(self, value: T) -> dict[str, AttributeValue]:
        if not is_dataclass(value) or isinstance(value, type):
            raise ValidationError("item must be a dataclass instance")

        out: dict[str, AttributeValue] = {}
        for field_name, attr_def in self._attributes.items():
            raw = getattr(value, field_name)
            if attr_def.omitempty and _is_empty(raw):
                continue
            if attr_def.converter is not None and raw is not None:
                raw = attr_def.converter.to_dynamodb(raw)
            out[attr_def.attribute_name] = _attributes.to_attribute_value(raw)
        return out

    def from_item(self, item: Attributes) -> T:
        kwargs: dict[str, Any] = {}
        for field_name, attr_def in self._attributes.items():
            if attr_def.attribute_name not in item:
                continue
            raw = _attributes.from_attribute_value(item[attr_def.attribute_name])
            if attr_def.converter is not None and raw is not None:
                raw = attr_def.converter.from_dynamodb(raw)
            kwargs[field_name] = _coerce_value(raw, self._hints.get(field_name, Any))

        try:
            return self._model_type(**kwargs)
        except TypeError as err:
            raise ValidationError(str(err)) from err


@dataclass(frozen=True)
class TableDefinition[T]:
    """Static description of a table and of how its items map to domain values.

    ``key_attributes`` lists the partition key first and the optional sort key
    second. ``from_item`` may return ``None`` to reject an item; paginated reads
    treat that the same as a decode failure.
    """

    name: str
    key_attributes: tuple[KeyAttribute, ...]
    from_item: Callable[[Attributes], T | None]
    to_item: Callable[[T], Mapping[str, AttributeValue]]

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise TableDefinitionError("table name is required")

        normalized = tuple(
            KeyAttribute(key) if isinstance(key, str) else key for key in self.key_attributes
        )
        if not 1 <= len(normalized) <= 2:
            raise TableDefinitionError(
                f"table must define one or two key attributes (found {len(normalized)})"
            )
        names = [key.name for key in normalized]
        if len(set(names)) != len(names):
            raise TableDefinitionError(f"duplicate key attribute: {names}")
        object.__setattr__(self, "key_attributes", normalized)

    @property
    def partition_key(self) -> KeyAttribute:
        return self.key_attributes[0]

    @property
    def sort_key(self) -> KeyAttribute | None:
        return self.key_attributes[1] if len(self.key_attributes) > 1 else None

    def key_of(self, value: T) -> dict[str, AttributeValue]:
        item = self.to_item(value)
        key: dict[str, AttributeValue] = {}
        for attr in self.key_attributes:
            if attr.name not in item:
                raise ValidationError(f"missing key attribute: {attr.name}")
            key[attr.name] = dict(item[attr.name])
        return key

    @classmethod
    def of_dicts(
        cls, name: str, *key_attributes: KeyAttribute | str
    ) -> TableDefinition[dict[str, Any]]:
        return TableDefinition(
            name=name,
            key_attributes=cast(tuple[KeyAttribute, ...], tuple(key_attributes)),
            from_item=_attributes.from_item,
            to_item=_attributes.to_item,
        )

    @classmethod
    def from_dataclass(cls, model_type: type[T], *, name: str) -> TableDefinition[T]:
        if not is_dataclass(model_type):
            raise TableDefinitionError("model_type must be a dataclass")

        hints = _resolve_hints(model_type)
        definitions: dict[str, AttributeDefinition] = {}
        pk_fields: list[str] = []
        sk_fields: list[str] = []

        for dc_field in fields(model_type):
            opts = cast(dict[str, Any], dc_field.metadata.get("ddbdsl", {}))
            if bool(opts.get("ignore", False)):
                continue

            roles = tuple(cast(list[str], opts.get("roles", [])))
            if "pk" in roles:
                pk_fields.append(dc_field.name)
            if "sk" in roles:
                sk_fields.append(dc_field.name)

            definitions[dc_field.name] = AttributeDefinition(
                python_name=dc_field.name,
                attribute_name=cast(str, opts.get("name", dc_field.name)),
                roles=roles,
                omitempty=bool(opts.get("omitempty", False)),
                converter=cast(AttributeConverter | None, opts.get("converter")),
            )

        if len(pk_fields) != 1:
            raise TableDefinitionError(f"model must define exactly one pk field (found {len(pk_fields)})")
        if len(sk_fields) > 1:
            raise TableDefinitionError(f"model must define at most one sk field (found {len(sk_fields)})")

        keys: list[KeyAttribute] = []
        for field_name in (*pk_fields, *sk_fields):
            attr_def = definitions[field_name]
            if attr_def.omitempty:
                raise TableDefinitionError(f"key field cannot be omitempty: {field_name}")
            keys.append(
                KeyAttribute(
                    attr_def.attribute_name,
                    _key_type_for_annotation(field_name, hints.get(field_name, Any)),
                )
            )

        mapper = DataclassItemMapper(model_type, definitions)
        return cls(
            name=name,
            key_attributes=tuple(keys),
            from_item=mapper.from_item,
            to_item=mapper.to_item,
        )
