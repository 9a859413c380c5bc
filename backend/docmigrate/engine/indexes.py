"""
Index Janitor

Drops obsolete indexes one by one, then builds the indexes of the target
schema. An index that is already gone counts as retired; any other server
error on a drop is logged and the next index is tried. An index that exists
under the same name with other keys or options is dropped and rebuilt.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

from pymongo.collection import Collection
from pymongo.errors import ConnectionFailure, OperationFailure, PyMongoError

from docmigrate.core.logging import get_logger

logger = get_logger("docmigrate.engine.indexes")

NAMESPACE_NOT_FOUND = 26
INDEX_NOT_FOUND = 27
INDEX_OPTIONS_CONFLICT = 85
INDEX_KEY_SPECS_CONFLICT = 86
DUPLICATE_KEY = 11000
ABSENT_CODE_NAMES = {"IndexNotFound", "NamespaceNotFound"}
CONFLICT_CODE_NAMES = {"IndexOptionsConflict", "IndexKeySpecsConflict"}


class IndexOutcome(str, Enum):
    RETIRED = "retired"
    ALREADY_ABSENT = "already_absent"
    ENSURED = "ensured"
    RECREATED = "recreated"
    FAILED = "failed"


@dataclass(frozen=True)
class IndexResult:
    name: str
    outcome: IndexOutcome
    error: Optional[str] = None


@dataclass(frozen=True)
class IndexSpec:
    """Index the target schema expects, in pymongo key-list form."""

    name: str
    keys: tuple[tuple[str, int], ...]
    unique: bool = False
    expire_after_seconds: Optional[int] = None

    def options(self) -> dict[str, Any]:
        options: dict[str, Any] = {"name": self.name, "unique": self.unique}
        # TTL indexes only
        if self.expire_after_seconds is not None:
            options["expireAfterSeconds"] = self.expire_after_seconds
        return options


def _is_absent(error: OperationFailure) -> bool:
    if error.code in (INDEX_NOT_FOUND, NAMESPACE_NOT_FOUND):
        return True
    details = error.details or {}
    return details.get("codeName") in ABSENT_CODE_NAMES


def _is_conflict(error: OperationFailure) -> bool:
    if error.code in (INDEX_OPTIONS_CONFLICT, INDEX_KEY_SPECS_CONFLICT):
        return True
    details = error.details or {}
    return details.get("codeName") in CONFLICT_CODE_NAMES


class IndexJanitor:
    """Retire obsolete indexes and ensure target indexes on one collection."""

    def __init__(self, collection: Collection) -> None:
        self.collection = collection

    def retire_one(self, name: str) -> IndexResult:
        try:
            self.collection.drop_index(name)
        except ConnectionFailure:
            raise
        except OperationFailure as e:
            if _is_absent(e):
                logger.info(f"Index {name} not found on {self.collection.name}")
                return IndexResult(name, IndexOutcome.ALREADY_ABSENT)
            logger.warning(f"Unable to drop index {name} on {self.collection.name}: {e}")
            return IndexResult(name, IndexOutcome.FAILED, str(e))
        except PyMongoError as e:
            logger.warning(f"Unable to drop index {name} on {self.collection.name}: {e}")
            return IndexResult(name, IndexOutcome.FAILED, str(e))

        logger.info(f"Dropped obsolete index {name} on {self.collection.name}")
        return IndexResult(name, IndexOutcome.RETIRED)

    def retire(self, names: Iterable[str]) -> list[IndexResult]:
        """
        Drop each named index.

        Args:
            names: Index names to retire

        Returns:
            One tagged outcome per name, in order

        Raises:
            ConnectionFailure: If the store becomes unreachable
        """
        return [self.retire_one(name) for name in names]

    def ensure_one(self, spec: IndexSpec) -> IndexResult:
        try:
            self.collection.create_index(list(spec.keys), **spec.options())
        except ConnectionFailure:
            raise
        except OperationFailure as e:
            if _is_conflict(e):
                logger.warning(
                    f"Index {spec.name} on {self.collection.name} exists with different options, recreating"
                )
                return self._recreate(spec)
            if e.code == DUPLICATE_KEY:
                logger.warning(f"Unable to build unique index {spec.name} on {self.collection.name}: {e}")
                return IndexResult(spec.name, IndexOutcome.FAILED, str(e))
            raise

        logger.info(f"Index created/updated: {spec.name} on {self.collection.name}")
        return IndexResult(spec.name, IndexOutcome.ENSURED)

    def _recreate(self, spec: IndexSpec) -> IndexResult:
        try:
            self.collection.drop_index(spec.name)
            self.collection.create_index(list(spec.keys), **spec.options())
        except ConnectionFailure:
            raise
        except PyMongoError as e:
            logger.warning(f"Could not recreate index {spec.name} on {self.collection.name}: {e}")
            return IndexResult(spec.name, IndexOutcome.FAILED, str(e))

        logger.info(f"Index recreated: {spec.name} on {self.collection.name}")
        return IndexResult(spec.name, IndexOutcome.RECREATED)

    def ensure(self, specs: Iterable[IndexSpec]) -> list[IndexResult]:
        """
        Build each index of the target schema.

        Building an index that already exists with the same keys and options
        is a no-op on the server, so this is safe to repeat.

        Args:
            specs: Indexes to build

        Returns:
            One tagged outcome per spec, in order

        Raises:
            ConnectionFailure: If the store becomes unreachable
            OperationFailure: For server errors other than an index conflict
                or a duplicate key in a unique index
        """
        return [self.ensure_one(spec) for spec in specs]
