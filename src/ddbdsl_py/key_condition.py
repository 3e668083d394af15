from __future__ import annotations

import copy
from decimal import Decimal

from .attributes import AttributeValue, key_type_for_value, to_attribute_value


class KeyCondition:
    """Equality conditions on key attributes, keyed by attribute name.

    Setting the same attribute twice keeps the last value. Names are not checked
    against the table's key schema; a wrong name is rejected by the store.
    """

    def __init__(self) -> None:
        self._attributes: dict[str, AttributeValue] = {}

    def eq(self, attribute: str, value: str | int | float | Decimal | bytes) -> KeyCondition:
        key_type_for_value(value)
        self._attributes[attribute] = to_attribute_value(value)
        return self

    def build(self) -> dict[str, AttributeValue]:
        return copy.deepcopy(self._attributes)
