"""Map legacy enum values into the current enum space."""

from __future__ import annotations

from collections.abc import Hashable
from typing import Any, Iterable, Mapping


class EnumRemapper:
    """Total function from any stored value to a member of `valid`.

    Values are first translated through `table`; anything that is still not
    a valid member, including unknown and corrupt values, becomes `default`.
    """

    def __init__(self, table: Mapping[str, str], valid: Iterable[str], default: str) -> None:
        self.table = dict(table)
        self.valid = frozenset(valid)
        if default not in self.valid:
            raise ValueError(f"Default {default!r} is not one of {sorted(self.valid)}")
        self.default = default

    def remap(self, old_value: Any) -> str:
        if old_value is None or old_value == "":
            return self.default

        new_value = old_value
        if isinstance(old_value, Hashable):
            new_value = self.table.get(old_value, old_value)

        if not isinstance(new_value, str) or new_value not in self.valid:
            return self.default
        return new_value
