"""
Field Classifier

Infers the contact channel of a stored document from explicit discriminant
fields first, then from the shape of its contact value.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Optional, Sequence

NON_DIGITS = re.compile(r"\D")


class ContactType(str, Enum):
    """Contact channels of the canonical schema."""

    EMAIL = "email"
    PHONE = "phone"


def first_truthy(record: dict[str, Any], fields: Sequence[str]) -> Any:
    """Return the first truthy value among `fields`, or None."""
    for field in fields:
        value = record.get(field)
        if value:
            return value
    return None


class FieldClassifier:
    """Classify a document into a ContactType.

    Explicit values always win over heuristics: the current-schema field is
    checked first, then each legacy field, and only then the candidate value.
    """

    def __init__(
        self,
        current_field: str = "contactType",
        legacy_fields: Sequence[str] = ("type",),
        value_fields: Sequence[str] = ("contact", "email", "phoneNumber"),
        phone_fields: Sequence[str] = ("phoneNumber",),
        min_phone_digits: int = 6,
    ) -> None:
        self.current_field = current_field
        self.legacy_fields = tuple(legacy_fields)
        self.value_fields = tuple(value_fields)
        self.phone_fields = tuple(phone_fields)
        self.min_phone_digits = min_phone_digits

    @staticmethod
    def _recognize(value: Any) -> Optional[ContactType]:
        if not isinstance(value, str):
            return None
        try:
            return ContactType(value)
        except ValueError:
            return None

    def classify(self, record: dict[str, Any]) -> Optional[ContactType]:
        """
        Infer the contact channel of a record.

        Args:
            record: Stored document

        Returns:
            The channel, or None when nothing identifies it
        """
        for field in (self.current_field, *self.legacy_fields):
            recognized = self._recognize(record.get(field))
            if recognized is not None:
                return recognized

        candidate = first_truthy(record, self.value_fields)

        if isinstance(candidate, str) and "@" in candidate:
            return ContactType.EMAIL

        if first_truthy(record, self.phone_fields) is not None:
            return ContactType.PHONE

        if isinstance(candidate, str) and len(NON_DIGITS.sub("", candidate)) >= self.min_phone_digits:
            return ContactType.PHONE

        return None
