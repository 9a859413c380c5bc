"""
Migration Runner

Drives one SchemaMigration over one collection:

    INIT -> INDEX_CLEANUP -> SCANNING -> DRAINING -> DONE

The run is safe to interrupt between batches and to repeat: documents that
already conform produce no write, so a restarted run converges on the same
state.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import ConnectionFailure

from docmigrate.core.exceptions import StoreUnavailableError
from docmigrate.core.logging import get_logger
from docmigrate.engine.batch import DEFAULT_BATCH_SIZE, BatchWriter
from docmigrate.engine.changeset import ChangeSetBuilder
from docmigrate.engine.indexes import IndexJanitor
from docmigrate.engine.plan import SchemaMigration
from docmigrate.schemas.models import MigrationReport

logger = get_logger("docmigrate.engine.runner")


class RunState(str, Enum):
    INIT = "init"
    INDEX_CLEANUP = "index_cleanup"
    SCANNING = "scanning"
    DRAINING = "draining"
    DONE = "done"


class MigrationRunner:
    """Apply a SchemaMigration to every eligible document of a collection."""

    def __init__(
        self,
        collection: Collection,
        plan: SchemaMigration,
        batch_size: int = DEFAULT_BATCH_SIZE,
        dry_run: bool = False,
    ) -> None:
        self.collection = collection
        self.plan = plan
        self.batch_size = batch_size
        self.dry_run = dry_run
        self.state = RunState.INIT

    def run(self) -> MigrationReport:
        """
        Execute the migration.

        Returns:
            MigrationReport with per-run counters

        Raises:
            StoreUnavailableError: If the store is unreachable at any point;
                no partial report is returned and the run can be retried
        """
        try:
            return self._run()
        except ConnectionFailure as e:
            logger.error(f"Store unavailable while migrating {self.collection.name} ({self.state.value}): {e}")
            raise StoreUnavailableError(
                f"Store unavailable during {self.plan.name}: {e}",
                details={"collection": self.collection.name, "state": self.state.value},
            ) from e

    def _run(self) -> MigrationReport:
        self.state = RunState.INIT
        report = MigrationReport(collection=self.collection.name, dry_run=self.dry_run)
        query = self.plan.eligibility_filter()
        writer = BatchWriter(self.collection, batch_size=self.batch_size, dry_run=self.dry_run)

        self.state = RunState.INDEX_CLEANUP
        self._update_indexes(report)

        self.state = RunState.SCANNING
        cursor = self.collection.find(query, batch_size=self.batch_size)
        try:
            for doc in cursor:
                self._migrate_document(doc, report, writer)
        finally:
            cursor.close()

        self.state = RunState.DRAINING
        writer.flush()
        report.failures = list(writer.failures)
        report.failed = len(writer.failures)
        report.modified = writer.modified
        report.acknowledged = writer.acknowledged

        self.state = RunState.DONE
        logger.info(f"{self.collection.name} documents examined: {report.examined}")
        logger.info(f"{self.collection.name} documents updated: {report.updated}")
        logger.info(
            f"{self.collection.name} updates submitted: {writer.submitted}, "
            f"matched: {writer.matched}, modified: {writer.modified}"
        )
        logger.info(f"{self.collection.name} documents skipped: {report.skipped}")
        if report.failed:
            logger.warning(f"{self.collection.name} updates rejected: {report.failed}")
        return report

    def _update_indexes(self, report: MigrationReport) -> None:
        """Drop the obsolete indexes, then build the target ones."""
        if not self.plan.obsolete_indexes and not self.plan.new_indexes:
            return

        if self.dry_run:
            names = list(self.plan.obsolete_indexes) + [spec.name for spec in self.plan.new_indexes]
            logger.info(f"Dry run: leaving indexes {', '.join(names)} as they are")
            return

        janitor = IndexJanitor(self.collection)
        for result in janitor.retire(self.plan.obsolete_indexes):
            report.retired_indexes[result.name] = result.outcome.value
        for result in janitor.ensure(self.plan.new_indexes):
            report.ensured_indexes[result.name] = result.outcome.value

    def _migrate_document(self, doc: dict[str, Any], report: MigrationReport, writer: BatchWriter) -> None:
        report.examined += 1
        doc_id = doc.get("_id")

        canonical = self.plan.canonicalize(doc)
        if canonical is None:
            logger.warning(
                f"Skipping {self.collection.name} document {doc_id} - unable to determine "
                f"{self.plan.value_field}/{self.plan.discriminant_field}"
            )
            report.skipped += 1
            report.skipped_ids.append(doc_id)
            return

        change_set = ChangeSetBuilder.build(doc, canonical, self.plan.obsolete_fields)
        if change_set.is_noop:
            return

        writer.add(doc_id, change_set)
        report.updated += 1


def migrate_collection(
    db: Database,
    collection_name: str,
    plan: SchemaMigration,
    batch_size: int = DEFAULT_BATCH_SIZE,
    dry_run: bool = False,
) -> MigrationReport:
    """
    Run a SchemaMigration against `db[collection_name]`.

    Args:
        db: pymongo Database handle
        collection_name: Collection to migrate
        plan: Migration plan for that collection
        batch_size: Pending updates per bulk write
        dry_run: Scan and diff without writing

    Returns:
        MigrationReport; `report.as_result()` gives the
        {acknowledged, matchedCount, modifiedCount} summary
    """
    runner = MigrationRunner(db[collection_name], plan, batch_size=batch_size, dry_run=dry_run)
    return runner.run()
