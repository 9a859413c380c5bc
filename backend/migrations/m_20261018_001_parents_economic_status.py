"""
Migration: parents_economic_status
Created: 2026-10-18

Description:
    economicStatus is no longer required. Parents created before the field
    existed get an explicit null so every document carries it.
"""

from pymongo.database import Database

from docmigrate.engine.backfill import MISSING_ONLY, DefaultsBackfiller, FieldDefault, is_anything
from docmigrate.engine.batch import DEFAULT_BATCH_SIZE
from docmigrate.engine.plan import SchemaMigration
from docmigrate.engine.runner import migrate_collection
from docmigrate.schemas.models import MigrationReport

COLLECTION = "parents"


def build_plan() -> SchemaMigration:
    return SchemaMigration(
        name="parents_economic_status",
        backfiller=DefaultsBackfiller([
            FieldDefault("economicStatus", None, is_anything, MISSING_ONLY),
        ]),
    )


def upgrade(
    db: Database,
    collection_name: str = COLLECTION,
    batch_size: int = DEFAULT_BATCH_SIZE,
    dry_run: bool = False,
) -> MigrationReport:
    """
    Backfill economicStatus on parents that lack it.

    Args:
        db: pymongo Database handle
        collection_name: Collection to migrate
        batch_size: Pending updates per bulk write
        dry_run: Scan and report without writing
    """
    return migrate_collection(db, collection_name, build_plan(), batch_size=batch_size, dry_run=dry_run)
