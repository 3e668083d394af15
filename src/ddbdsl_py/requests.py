"""Request builders for every table operation.

Builders accumulate options and compile them into an immutable :class:`Request`.
``build`` never changes builder state, so the paginated builders can be asked for
one request per page with a different cursor each time.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterable, Mapping, Sequence
from types import MappingProxyType
from typing import Any, ClassVar, Self

from .attributes import Attributes, AttributeValue, to_attribute_value
from .errors import ValidationError
from .key_condition import KeyCondition
from .model import TableDefinition
from .query import FilterCondition, FilterExpression, FilterGroup, SortKeyCondition, encode_cursor

BATCH_GET_MAX_KEYS = 100
FILTER_IN_MAX_VALUES = 100

_COMPARISONS = {
    "=": "=",
    "EQ": "=",
    "!=": "<>",
    "<>": "<>",
    "NE": "<>",
    "<": "<",
    "LT": "<",
    "<=": "<=",
    "LE": "<=",
    ">": ">",
    "GT": ">",
    ">=": ">=",
    "GE": ">=",
}


class Request:
    """A ready-to-send call: the client method name and its keyword arguments."""

    __slots__ = ("_operation", "_params")

    def __init__(self, operation: str, params: Mapping[str, Any]) -> None:
        self._operation = operation
        self._params = MappingProxyType(copy.deepcopy(dict(params)))

    @property
    def operation(self) -> str:
        return self._operation

    @property
    def params(self) -> Mapping[str, Any]:
        return self._params

    def kwargs(self) -> dict[str, Any]:
        return copy.deepcopy(dict(self._params))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Request):
            return NotImplemented
        return self._operation == other._operation and dict(self._params) == dict(other._params)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Request({self._operation!r}, {dict(self._params)!r})"


def _chunked[T](items: Sequence[T], size: int) -> Sequence[Sequence[T]]:
    if size <= 0:
        raise ValueError("size must be > 0")
    return [items[i : i + size] for i in range(0, len(items), size)]


def compile_filter(expr: FilterExpression, names: dict[str, str], values: dict[str, Any]) -> str:
    refs: dict[str, str] = {}

    def name_ref(field_name: str) -> str:
        ref = refs.get(field_name)
        if ref is None:
            ref = f"#f{len(refs) + 1}"
            refs[field_name] = ref
            names[ref] = field_name
        return ref

    def value_ref(value: Any) -> str:
        ref = f":f{sum(1 for k in values if k.startswith(':f')) + 1}"
        values[ref] = to_attribute_value(value)
        return ref

    def one(node: FilterCondition) -> Any:
        if len(node.values) != 1:
            raise ValidationError(f"{node.op} requires one value")
        return node.values[0]

    def build(node: FilterExpression) -> str:
        if isinstance(node, FilterGroup):
            parts = [p for p in (build(f) for f in node.filters) if p]
            if not parts:
                return ""
            return "(" + f" {node.op} ".join(parts) + ")"

        if not isinstance(node, FilterCondition):
            raise ValidationError("invalid filter expression")

        name = name_ref(node.field)
        op = node.op.upper()

        if op in _COMPARISONS:
            return f"{name} {_COMPARISONS[op]} {value_ref(one(node))}"

        if op == "BETWEEN":
            if len(node.values) != 2:
                raise ValidationError("BETWEEN requires two values")
            low = value_ref(node.values[0])
            high = value_ref(node.values[1])
            return f"{name} BETWEEN {low} AND {high}"

        if op == "IN":
            candidates = one(node)
            if not isinstance(candidates, Sequence) or isinstance(candidates, (str, bytes, bytearray)):
                raise ValidationError("IN requires a sequence of values")
            if len(candidates) > FILTER_IN_MAX_VALUES:
                raise ValidationError(f"IN supports maximum {FILTER_IN_MAX_VALUES} values")
            return f"{name} IN (" + ", ".join(value_ref(v) for v in candidates) + ")"

        if op == "BEGINS_WITH":
            return f"begins_with({name}, {value_ref(one(node))})"

        if op == "CONTAINS":
            return f"contains({name}, {value_ref(one(node))})"

        if op in {"EXISTS", "ATTRIBUTE_EXISTS", "NOT_EXISTS", "ATTRIBUTE_NOT_EXISTS"}:
            if node.values:
                raise ValidationError(f"{node.op} does not take a value")
            fn = "attribute_not_exists" if "NOT" in op else "attribute_exists"
            return f"{fn}({name})"

        raise ValidationError(f"unsupported filter operator: {node.op}")

    return build(expr)


def _apply_sort_condition(prefix: str, cond: SortKeyCondition, values: dict[str, Any]) -> str:
    op = cond.op
    if op in {"=", "<", "<=", ">", ">="}:
        if len(cond.values) != 1:
            raise ValidationError("invalid sort key condition")
        values[":sk"] = to_attribute_value(cond.values[0])
        return f"{prefix} AND #sk {op} :sk"
    if op == "between":
        if len(cond.values) != 2:
            raise ValidationError("invalid sort key condition")
        values[":sk1"] = to_attribute_value(cond.values[0])
        values[":sk2"] = to_attribute_value(cond.values[1])
        return f"{prefix} AND #sk BETWEEN :sk1 AND :sk2"
    if op == "begins_with":
        if len(cond.values) != 1:
            raise ValidationError("invalid sort key condition")
        values[":sk"] = to_attribute_value(cond.values[0])
        return f"{prefix} AND begins_with(#sk, :sk)"
    raise ValidationError(f"unsupported sort key operator: {op}")


class _PagedBuilder[T]:
    operation: ClassVar[str]

    def __init__(self, definition: TableDefinition[T]) -> None:
        self._definition = definition
        self._mapper: Callable[[Attributes], T | None] = definition.from_item
        self._strict = False
        self._consistent_read = False
        self._limit: int | None = None
        self._filter: FilterExpression | None = None

    @property
    def definition(self) -> TableDefinition[T]:
        return self._definition

    @property
    def mapper(self) -> Callable[[Attributes], T | None]:
        return self._mapper

    @property
    def strict(self) -> bool:
        return self._strict

    def with_consistent_read(self, enabled: bool = True) -> Self:
        self._consistent_read = enabled
        return self

    def limit(self, max_items: int) -> Self:
        if max_items <= 0:
            raise ValidationError("limit must be > 0")
        self._limit = max_items
        return self

    def filter(self, expr: FilterExpression) -> Self:
        self._filter = expr
        return self

    def mapping_items(self, mapper: Callable[[Attributes], T | None]) -> Self:
        self._mapper = mapper
        return self

    def strict_decoding(self, enabled: bool = True) -> Self:
        self._strict = enabled
        return self

    def build(self, cursor: Attributes | None = None) -> Request:
        raise NotImplementedError

    def _finish(
        self,
        params: dict[str, Any],
        names: dict[str, str],
        values: dict[str, Any],
        cursor: Attributes | None,
    ) -> Request:
        if self._limit is not None:
            params["Limit"] = self._limit
        if self._filter is not None:
            expression = compile_filter(self._filter, names, values)
            if expression:
                params["FilterExpression"] = expression
        if names:
            params["ExpressionAttributeNames"] = names
        if values:
            params["ExpressionAttributeValues"] = values
        if cursor:
            params["ExclusiveStartKey"] = dict(cursor)
        return Request(self.operation, params)


class QueryBuilder[T](_PagedBuilder[T]):
    operation = "query"

    def __init__(self, definition: TableDefinition[T]) -> None:
        super().__init__(definition)
        self._key: dict[str, AttributeValue] = {}
        self._sort: SortKeyCondition | None = None
        self._raw_key: tuple[str, dict[str, str], dict[str, AttributeValue]] | None = None
        self._scan_forward = True

    def where(self, configure: Callable[[KeyCondition], Any]) -> Self:
        condition = KeyCondition()
        configure(condition)
        self._key = condition.build()
        return self

    def sort(self, condition: SortKeyCondition) -> Self:
        self._sort = condition
        return self

    def key_condition(
        self,
        expression: str,
        *,
        values: Mapping[str, Any] | None = None,
        names: Mapping[str, str] | None = None,
    ) -> Self:
        self._raw_key = (
            expression,
            dict(names or {}),
            {ref: to_attribute_value(v) for ref, v in (values or {}).items()},
        )
        return self

    def descending(self) -> Self:
        self._scan_forward = False
        return self

    def build(self, cursor: Attributes | None = None) -> Request:
        names: dict[str, str] = {}
        values: dict[str, Any] = {}
        params: dict[str, Any] = {
            "TableName": self._definition.name,
            "KeyConditionExpression": self._key_expression(names, values),
            "ScanIndexForward": self._scan_forward,
            "ConsistentRead": self._consistent_read,
        }
        return self._finish(params, names, values, cursor)

    def _key_expression(self, names: dict[str, str], values: dict[str, Any]) -> str:
        if self._raw_key is not None:
            if self._key or self._sort is not None:
                raise ValidationError("key_condition cannot be combined with where() or sort()")
            expression, raw_names, raw_values = self._raw_key
            names.update(raw_names)
            values.update(raw_values)
            return expression

        if not self._key:
            raise ValidationError("query requires a key condition")

        parts: list[str] = []
        for i, (attribute, av) in enumerate(self._key.items()):
            names[f"#k{i}"] = attribute
            values[f":k{i}"] = av
            parts.append(f"#k{i} = :k{i}")
        expression = " AND ".join(parts)

        if self._sort is not None:
            sort_key = self._definition.sort_key
            if sort_key is None:
                raise ValidationError("table does not define a sort key")
            names["#sk"] = sort_key.name
            expression = _apply_sort_condition(expression, self._sort, values)
        return expression


class ScanBuilder[T](_PagedBuilder[T]):
    operation = "scan"

    def __init__(self, definition: TableDefinition[T]) -> None:
        super().__init__(definition)
        self._segment: tuple[int, int] | None = None

    def segment(self, segment: int, total_segments: int) -> Self:
        if segment < 0 or total_segments <= 0 or segment >= total_segments:
            raise ValidationError("invalid segment/total_segments")
        self._segment = (segment, total_segments)
        return self

    def build(self, cursor: Attributes | None = None) -> Request:
        params: dict[str, Any] = {
            "TableName": self._definition.name,
            "ConsistentRead": self._consistent_read,
        }
        if self._segment is not None:
            params["Segment"], params["TotalSegments"] = self._segment
        return self._finish(params, {}, {}, cursor)


def build_get_request[T](
    definition: TableDefinition[T], key: T, *, consistent_read: bool = False
) -> Request:
    return Request(
        "get_item",
        {"TableName": definition.name, "Key": definition.key_of(key), "ConsistentRead": consistent_read},
    )


def build_put_request[T](definition: TableDefinition[T], value: T) -> Request:
    item = dict(definition.to_item(value))
    for attr in definition.key_attributes:
        if attr.name not in item:
            raise ValidationError(f"missing key attribute: {attr.name}")
    return Request("put_item", {"TableName": definition.name, "Item": item})


def build_delete_request[T](definition: TableDefinition[T], key: T) -> Request:
    return Request("delete_item", {"TableName": definition.name, "Key": definition.key_of(key)})


def build_batch_get_requests[T](
    definition: TableDefinition[T],
    keys: Iterable[T],
    *,
    consistent_read: bool = False,
) -> list[Request]:
    unique: dict[str, dict[str, AttributeValue]] = {}
    for key in keys:
        encoded = definition.key_of(key)
        unique.setdefault(encode_cursor(encoded), encoded)

    return [
        Request(
            "batch_get_item",
            {"RequestItems": {definition.name: {"Keys": list(chunk), "ConsistentRead": consistent_read}}},
        )
        for chunk in _chunked(list(unique.values()), BATCH_GET_MAX_KEYS)
    ]


def unprocessed_batch_request(definition: TableDefinition[Any], response: Mapping[str, Any]) -> Request | None:
    pending = (response.get("UnprocessedKeys") or {}).get(definition.name) or {}
    if not pending.get("Keys"):
        return None
    return Request("batch_get_item", {"RequestItems": {definition.name: pending}})
