"""
Schema Migration Plan

Declarative description of how one collection moves to a new schema
version: which components canonicalize a document, which fields and indexes
are retired, which indexes are built, and which documents are worth
examining at all.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from docmigrate.engine.backfill import DefaultsBackfiller
from docmigrate.engine.classifier import FieldClassifier
from docmigrate.engine.indexes import IndexSpec
from docmigrate.engine.normalizer import ValueNormalizer
from docmigrate.engine.remapper import EnumRemapper


@dataclass
class SchemaMigration:
    """Per-collection migration plan.

    When `classifier` is set, `discriminant_field` receives the classified
    channel and `value_field` the normalized value; a document for which
    either cannot be derived is not migrated.
    """

    name: str
    classifier: Optional[FieldClassifier] = None
    normalizer: Optional[ValueNormalizer] = None
    discriminant_field: Optional[str] = None
    value_field: Optional[str] = None
    enums: dict[str, EnumRemapper] = field(default_factory=dict)
    backfiller: DefaultsBackfiller = field(default_factory=DefaultsBackfiller)
    obsolete_fields: tuple[str, ...] = ()
    obsolete_indexes: tuple[str, ...] = ()
    new_indexes: tuple[IndexSpec, ...] = ()

    def __post_init__(self) -> None:
        if self.classifier is not None:
            if self.normalizer is None or not self.discriminant_field or not self.value_field:
                raise ValueError(
                    f"{self.name}: a classifier needs a normalizer, discriminant_field and value_field"
                )

    def canonicalize(self, record: dict[str, Any]) -> Optional[dict[str, Any]]:
        """
        Project a stored document onto the target schema.

        Args:
            record: Stored document

        Returns:
            Desired values of the required fields, or None if the document
            cannot be migrated automatically
        """
        canonical: dict[str, Any] = {}

        if self.classifier is not None:
            discriminant = self.classifier.classify(record)
            if discriminant is None:
                return None
            value = self.normalizer.normalize(discriminant, record)
            if value is None:
                return None
            canonical[self.value_field] = value
            canonical[self.discriminant_field] = discriminant.value

        for name, remapper in self.enums.items():
            canonical[name] = remapper.remap(record.get(name))

        canonical.update(self.backfiller.backfill(record))
        return canonical

    def eligibility_filter(self) -> dict[str, Any]:
        """
        Query selecting every document that may need a change.

        It may select documents that turn out to be conforming; it never
        leaves out one that does not conform.
        """
        clauses: list[dict[str, Any]] = []

        if self.classifier is not None:
            clauses.extend(self.normalizer.eligibility_clauses(self.discriminant_field, self.value_field))

        # $nin also matches absent fields and unknown values, not only legacy ones
        for name, remapper in self.enums.items():
            clauses.append({name: {"$nin": sorted(remapper.valid)}})

        clauses.extend(self.backfiller.eligibility_clauses())

        for name in self.obsolete_fields:
            clauses.append({name: {"$exists": True}})

        if not clauses:
            return {}
        if len(clauses) == 1:
            return clauses[0]
        return {"$or": clauses}
