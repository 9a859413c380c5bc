"""Canonicalize a classified contact value."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from docmigrate.engine.classifier import ContactType, first_truthy

DEFAULT_CANDIDATES: dict[ContactType, tuple[str, ...]] = {
    ContactType.EMAIL: ("contact", "email"),
    ContactType.PHONE: ("contact", "phoneNumber"),
}


def normalize_email(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip().lower() or None


def normalize_phone(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


# str.strip() and str.lower() are Unicode-aware while the server's regexes
# are not, so any non-ASCII character at an edge or in an email is selected.
UNTRIMMED_PATTERN = r"^[\t-\r\x1c- ]|[\t-\r\x1c- ]$|^[^\x00-\x7f]|[^\x00-\x7f]$"
NOT_LOWERCASE_PATTERN = r"[A-Z]|[^\x00-\x7f]"

NORMALIZERS = {
    ContactType.EMAIL: normalize_email,
    ContactType.PHONE: normalize_phone,
}


class ValueNormalizer:
    """Pick the contact value for a channel from an ordered candidate list."""

    def __init__(self, candidates: Mapping[ContactType, Sequence[str]] | None = None) -> None:
        self.candidates = {
            channel: tuple(fields)
            for channel, fields in (candidates or DEFAULT_CANDIDATES).items()
        }

    def normalize(self, discriminant: Optional[ContactType], record: dict[str, Any]) -> Optional[str]:
        """
        Return the canonical contact value, or None if it cannot be derived.

        Args:
            discriminant: Channel returned by the classifier
            record: Stored document
        """
        if discriminant is None or discriminant not in self.candidates:
            return None
        value = first_truthy(record, self.candidates[discriminant])
        return NORMALIZERS[discriminant](value)

    def eligibility_clauses(self, discriminant_field: str, value_field: str) -> list[dict[str, Any]]:
        """Query clauses matching documents whose stored value is not canonical."""
        clauses: list[dict[str, Any]] = [
            {discriminant_field: {"$nin": sorted(channel.value for channel in self.candidates)}},
            {value_field: {"$not": {"$type": "string"}}},
            {value_field: {"$regex": UNTRIMMED_PATTERN}},
        ]
        if ContactType.EMAIL in self.candidates:
            clauses.append({
                "$and": [
                    {discriminant_field: ContactType.EMAIL.value},
                    {value_field: {"$regex": NOT_LOWERCASE_PATTERN}},
                ]
            })
        return clauses
