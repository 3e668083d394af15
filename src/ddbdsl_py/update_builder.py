from __future__ import annotations

from collections.abc import Callable, Iterable
from decimal import Decimal
from typing import Any

from .attributes import AttributeValue, to_attribute_value
from .errors import ValidationError
from .key_condition import KeyCondition
from .model import TableDefinition
from .requests import Request

RETURN_VALUES = frozenset({"NONE", "ALL_OLD", "UPDATED_OLD", "ALL_NEW", "UPDATED_NEW"})


class UpdateBuilder[T]:
    """Accumulates one ``update_item`` call.

    Clauses are grouped by keyword (``SET``, ``REMOVE``, ``ADD``, ``DELETE``); groups
    render in order of first use and clauses in call order. Placeholders are
    allocated when a clause is added, so ``build`` can be called any number of times
    and always returns an equal request.
    """

    def __init__(self, definition: TableDefinition[T]) -> None:
        self._definition = definition
        self._key: dict[str, AttributeValue] = {}
        self._return_values = "NONE"
        self._clauses: dict[str, list[str]] = {}
        self._names: dict[str, str] = {}
        self._values: dict[str, AttributeValue] = {}

    def where(self, configure: Callable[[KeyCondition], Any]) -> UpdateBuilder[T]:
        condition = KeyCondition()
        configure(condition)
        self._key = condition.build()
        return self

    def set(self, attribute: str, value: Any) -> UpdateBuilder[T]:
        ref = self._name_ref(attribute)
        return self._clause("SET", f"{ref} = {self._value_ref(value)}")

    def set_if_not_exists(self, attribute: str, value: Any) -> UpdateBuilder[T]:
        ref = self._name_ref(attribute)
        return self._clause("SET", f"{ref} = if_not_exists({ref}, {self._value_ref(value)})")

    def append_to_list(self, attribute: str, values: Iterable[Any]) -> UpdateBuilder[T]:
        ref = self._name_ref(attribute)
        return self._clause("SET", f"{ref} = list_append({ref}, {self._value_ref(list(values))})")

    def prepend_to_list(self, attribute: str, values: Iterable[Any]) -> UpdateBuilder[T]:
        ref = self._name_ref(attribute)
        return self._clause("SET", f"{ref} = list_append({self._value_ref(list(values))}, {ref})")

    def remove(self, *attributes: str) -> UpdateBuilder[T]:
        if not attributes:
            raise ValidationError("remove requires at least one attribute")
        for attribute in attributes:
            self._clause("REMOVE", self._name_ref(attribute))
        return self

    def add(self, attribute: str, value: Any) -> UpdateBuilder[T]:
        if isinstance(value, bool) or not isinstance(value, (int, float, Decimal, set, frozenset)):
            raise ValidationError("ADD requires a number or a set")
        ref = self._name_ref(attribute)
        return self._clause("ADD", f"{ref} {self._value_ref(value)}")

    def increment(self, attribute: str) -> UpdateBuilder[T]:
        return self.add(attribute, 1)

    def decrement(self, attribute: str) -> UpdateBuilder[T]:
        return self.add(attribute, -1)

    def delete(self, attribute: str, values: Iterable[Any]) -> UpdateBuilder[T]:
        elements = set(values)
        if not elements:
            raise ValidationError("DELETE requires a non-empty set")
        ref = self._name_ref(attribute)
        return self._clause("DELETE", f"{ref} {self._value_ref(elements)}")

    def return_values(self, option: str) -> UpdateBuilder[T]:
        normalized = str(option or "").strip().upper()
        if normalized not in RETURN_VALUES:
            raise ValidationError(f"unsupported return values option: {option}")
        self._return_values = normalized
        return self

    def build(self) -> Request:
        if not self._key:
            raise ValidationError("update requires a key condition")
        if not self._clauses:
            raise ValidationError("no updates provided")

        params: dict[str, Any] = {
            "TableName": self._definition.name,
            "Key": self._key,
            "UpdateExpression": " ".join(
                f"{keyword} " + ", ".join(clauses) for keyword, clauses in self._clauses.items()
            ),
            "ExpressionAttributeNames": self._names,
            "ReturnValues": self._return_values,
        }
        if self._values:
            params["ExpressionAttributeValues"] = self._values
        return Request("update_item", params)

    def _clause(self, keyword: str, clause: str) -> UpdateBuilder[T]:
        self._clauses.setdefault(keyword, []).append(clause)
        return self

    def _name_ref(self, attribute: str) -> str:
        if not attribute:
            raise ValidationError("attribute name is required")
        if any(attribute == key.name for key in self._definition.key_attributes):
            raise ValidationError(f"cannot update key attribute: {attribute}")
        for ref, name in self._names.items():
            if name == attribute:
                return ref
        ref = f"#u{len(self._names)}"
        self._names[ref] = attribute
        return ref

    def _value_ref(self, value: Any) -> str:
        ref = f":u{len(self._values)}"
        self._values[ref] = to_attribute_value(value)
        return ref
