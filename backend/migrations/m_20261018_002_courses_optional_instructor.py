"""
Migration: courses_optional_instructor
Created: 2026-10-18

Description:
    instructor and headline become optional on courses. No document changes;
    the instructor index is retired and the number of courses already
    lacking either field is reported.
"""

from pymongo.database import Database

from docmigrate.core.logging import get_logger
from docmigrate.engine.batch import DEFAULT_BATCH_SIZE
from docmigrate.engine.indexes import IndexJanitor
from docmigrate.schemas.models import MigrationReport

COLLECTION = "courses"
OBSOLETE_INDEXES = ("instructor_index",)
NOW_OPTIONAL = ("instructor", "headline")

logger = get_logger("docmigrate.migrations.courses")


def upgrade(
    db: Database,
    collection_name: str = COLLECTION,
    batch_size: int = DEFAULT_BATCH_SIZE,
    dry_run: bool = False,
) -> MigrationReport:
    """
    Retire the instructor index and report courses without optional fields.

    Args:
        db: pymongo Database handle
        collection_name: Collection to migrate
        batch_size: Unused; no documents are written
        dry_run: Report without dropping the index
    """
    collection = db[collection_name]
    report = MigrationReport(collection=collection_name, dry_run=dry_run)

    if not dry_run:
        for retirement in IndexJanitor(collection).retire(OBSOLETE_INDEXES):
            report.retired_indexes[retirement.name] = retirement.outcome.value

    for field in NOW_OPTIONAL:
        missing = collection.count_documents({field: None})
        logger.info(f"Courses without {field}: {missing}")

    return report
