"""
Defaults Backfiller

Supplies declared defaults for fields that are missing or hold a value the
target type cannot represent.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from bson.decimal128 import Decimal128

_MISSING = object()

# Query conditions matching stored values that will be replaced by the default
MISSING_OR_NULL: tuple[dict[str, Any], ...] = ({"$eq": None},)
MISSING_ONLY: tuple[dict[str, Any], ...] = ({"$exists": False},)
NOT_A_COUNT: tuple[dict[str, Any], ...] = ({"$not": {"$gte": 0, "$lt": math.inf}},)
NOT_A_BOOL: tuple[dict[str, Any], ...] = ({"$not": {"$type": "bool"}},)


def is_present(value: Any) -> bool:
    return value is not None


def is_anything(value: Any) -> bool:
    return True


def is_count(value: Any) -> bool:
    """True for finite, non-negative numbers, Decimal128 included and booleans excluded."""
    if isinstance(value, Decimal128):
        value = value.to_decimal()
        return value.is_finite() and value >= 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value >= 0


def is_bool(value: Any) -> bool:
    return isinstance(value, bool)


@dataclass(frozen=True)
class FieldDefault:
    """Default for one field.

    `is_valid` decides whether a stored value is kept; `stale_conditions`
    are the query conditions selecting documents where it would not be.
    """

    name: str
    default: Any
    is_valid: Callable[[Any], bool] = is_present
    stale_conditions: tuple[dict[str, Any], ...] = MISSING_OR_NULL


def count_field(name: str, default: int = 0) -> FieldDefault:
    return FieldDefault(name, default, is_count, NOT_A_COUNT)


def bool_field(name: str, default: bool = False) -> FieldDefault:
    return FieldDefault(name, default, is_bool, NOT_A_BOOL)


class DefaultsBackfiller:
    def __init__(self, fields: Sequence[FieldDefault] = ()) -> None:
        self.fields = tuple(fields)

    @property
    def field_names(self) -> list[str]:
        return [field.name for field in self.fields]

    def backfill(self, record: dict[str, Any]) -> dict[str, Any]:
        """
        Return the value each declared field should hold.

        A stored value that passes its predicate is returned as-is, so applying
        the result to an already valid record changes nothing.
        """
        values: dict[str, Any] = {}
        for field in self.fields:
            stored = record.get(field.name, _MISSING)
            if stored is _MISSING or not field.is_valid(stored):
                values[field.name] = field.default
            else:
                values[field.name] = stored
        return values

    def eligibility_clauses(self) -> list[dict[str, Any]]:
        return [
            {field.name: condition}
            for field in self.fields
            for condition in field.stale_conditions
        ]
