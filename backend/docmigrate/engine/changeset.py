"""
ChangeSet Builder

Diffs the desired state of a document against what is stored and produces
the smallest partial update that reconciles them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

_MISSING = object()


def same_value(stored: Any, desired: Any) -> bool:
    """Value equality that does not treat True/False as 1/0."""
    if isinstance(stored, bool) or isinstance(desired, bool):
        return isinstance(stored, bool) and isinstance(desired, bool) and stored == desired
    return stored == desired


@dataclass(frozen=True)
class ChangeSet:
    """Fields to assign and fields to remove on one document."""

    set_fields: dict[str, Any] = field(default_factory=dict)
    unset_fields: frozenset[str] = frozenset()

    @property
    def is_noop(self) -> bool:
        return not self.set_fields and not self.unset_fields

    def to_update(self) -> dict[str, Any]:
        """Render as a MongoDB update document."""
        update: dict[str, Any] = {}
        if self.set_fields:
            update["$set"] = dict(self.set_fields)
        if self.unset_fields:
            update["$unset"] = {name: "" for name in sorted(self.unset_fields)}
        return update


class ChangeSetBuilder:
    @staticmethod
    def build(
        stored: dict[str, Any],
        canonical: dict[str, Any],
        obsolete_fields: Iterable[str] = (),
    ) -> ChangeSet:
        """
        Compute the partial update turning `stored` into `canonical`.

        Args:
            stored: Document as read from the collection
            canonical: Desired values of the required fields
            obsolete_fields: Fields that must not survive the migration

        Returns:
            ChangeSet; `is_noop` is True when the document already conforms
        """
        to_set = {
            name: value
            for name, value in canonical.items()
            if not same_value(stored.get(name, _MISSING), value)
        }
        to_unset = frozenset(name for name in obsolete_fields if name in stored and name not in canonical)
        return ChangeSet(set_fields=to_set, unset_fields=to_unset)
