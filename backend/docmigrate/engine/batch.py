"""
Batch Writer

Bounded buffer of per-document partial updates, flushed as unordered bulk
writes. One rejected update never blocks the rest of its batch; rejected
updates are traced back to their document ids.
"""

from __future__ import annotations

from typing import Any

from pymongo import UpdateOne
from pymongo.collection import Collection
from pymongo.errors import BulkWriteError

from docmigrate.core.logging import get_logger
from docmigrate.engine.changeset import ChangeSet
from docmigrate.schemas.models import WriteFailure

logger = get_logger("docmigrate.engine.batch")

# Updates per bulk write
DEFAULT_BATCH_SIZE = 500


class BatchWriter:
    """Accumulate UpdateOne operations and submit them in batches."""

    def __init__(
        self,
        collection: Collection,
        batch_size: int = DEFAULT_BATCH_SIZE,
        dry_run: bool = False,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.collection = collection
        self.batch_size = batch_size
        self.dry_run = dry_run

        self._pending_ids: list[Any] = []
        self._pending_ops: list[UpdateOne] = []

        self.submitted = 0
        self.matched = 0
        self.modified = 0
        self.acknowledged = True
        self.failures: list[WriteFailure] = []

    @property
    def pending(self) -> int:
        return len(self._pending_ops)

    def add(self, doc_id: Any, change_set: ChangeSet) -> None:
        """
        Queue an update for one document, flushing when the buffer is full.

        Args:
            doc_id: The document's _id
            change_set: Non-empty change set for that document
        """
        if change_set.is_noop:
            raise ValueError(f"Refusing to queue an empty update for {doc_id!r}")

        self._pending_ids.append(doc_id)
        self._pending_ops.append(UpdateOne({"_id": doc_id}, change_set.to_update()))

        if len(self._pending_ops) >= self.batch_size:
            self.flush()

    def flush(self) -> None:
        """Submit all pending operations as one unordered bulk write."""
        if not self._pending_ops:
            return

        ids, ops = self._pending_ids, self._pending_ops
        self._pending_ids, self._pending_ops = [], []
        self.submitted += len(ops)

        if self.dry_run:
            logger.info(f"Dry run: {len(ops)} updates for {self.collection.name} not submitted")
            return

        try:
            result = self.collection.bulk_write(ops, ordered=False)
        except BulkWriteError as e:
            self._record_partial_failure(ids, e.details)
            return

        if not result.acknowledged:
            self.acknowledged = False
            return

        self.matched += result.matched_count
        self.modified += result.modified_count
        logger.debug(f"Flushed {len(ops)} updates to {self.collection.name}")

    def _record_partial_failure(self, ids: list[Any], details: dict[str, Any]) -> None:
        self.matched += details.get("nMatched", 0)
        self.modified += details.get("nModified", 0)

        for error in details.get("writeErrors", []):
            index = error.get("index")
            doc_id = ids[index] if isinstance(index, int) and 0 <= index < len(ids) else None
            failure = WriteFailure(
                document_id=doc_id,
                code=error.get("code"),
                message=error.get("errmsg", ""),
            )
            self.failures.append(failure)
            logger.warning(f"Update rejected for {self.collection.name} document {doc_id}: {failure.message}")
