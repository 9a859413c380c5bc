"""
MongoDB Migration Runner

A simple migration system for MongoDB that tracks executed migrations
in a _migrations collection.

Usage:
    python -m migrations.runner migrate             # Run pending migrations
    python -m migrations.runner migrate --dry-run   # Scan and report, write nothing
    python -m migrations.runner status              # Show migration status
    python -m migrations.runner create NAME         # Create new migration file
"""

import argparse
import importlib.util
import sys
import time
from datetime import datetime
from pathlib import Path
from types import ModuleType
from typing import Optional

from pymongo.errors import ConnectionFailure

from docmigrate.core.config import Settings, load_settings
from docmigrate.core.exceptions import DocMigrateError, MigrationScriptError, StoreUnavailableError
from docmigrate.core.logging import LogContext, get_logger, setup_logging
from docmigrate.repositories.mongo_repo import MongoRepository

MIGRATIONS_DIR = Path(__file__).parent

logger = get_logger("docmigrate.migrations.runner")


def get_pending_migrations(
    executed: set[str],
    migrations_dir: Path = MIGRATIONS_DIR,
) -> list[tuple[str, Path]]:
    """Get list of pending migrations (not yet executed), in file name order."""
    pending = []
    for file in sorted(migrations_dir.glob("m_*.py")):
        migration_id = file.stem  # e.g., "m_20261018_001_otps_contact_v2"
        if migration_id not in executed:
            pending.append((migration_id, file))

    return pending


def load_migration(migration_id: str, file_path: Path) -> ModuleType:
    """
    Import a migration script and check it follows the script contract.

    Raises:
        MigrationScriptError: If the module cannot be imported, or lacks
            COLLECTION or upgrade()
    """
    try:
        spec = importlib.util.spec_from_file_location(migration_id, file_path)
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
    except Exception as e:
        raise MigrationScriptError(f"Cannot import {migration_id}: {e}", migration_id=migration_id) from e

    if not callable(getattr(module, "upgrade", None)):
        raise MigrationScriptError(f"{migration_id} has no 'upgrade' function", migration_id=migration_id)
    if not isinstance(getattr(module, "COLLECTION", None), str):
        raise MigrationScriptError(f"{migration_id} has no COLLECTION name", migration_id=migration_id)

    return module


def run_migration(
    repo: MongoRepository,
    migration_id: str,
    file_path: Path,
    settings: Settings,
    dry_run: bool = False,
) -> bool:
    """Run a single migration and record its outcome."""
    print(f"Running migration: {migration_id}")
    started = time.monotonic()
    collection = ""

    try:
        module = load_migration(migration_id, file_path)
        collection = module.COLLECTION

        with LogContext(logger, "migration", id=migration_id, collection=collection, dry_run=dry_run):
            report = module.upgrade(
                repo.db,
                collection,
                batch_size=settings.batch_size,
                dry_run=dry_run,
            )

    except StoreUnavailableError as e:
        print(f"  ✗ Store unavailable during {migration_id}: {e.message}")
        raise

    except ConnectionFailure as e:
        print(f"  ✗ Store unavailable during {migration_id}: {e}")
        raise StoreUnavailableError(f"Store unavailable during {migration_id}: {e}") from e

    except Exception as e:
        elapsed_ms = int((time.monotonic() - started) * 1000)
        print(f"  ✗ Error running {migration_id}: {e}")
        if not dry_run:
            repo.mark_migration_failed(migration_id, collection, elapsed_ms, e)
        return False

    elapsed_ms = int((time.monotonic() - started) * 1000)
    print(
        f"  examined {report.examined}, updated {report.updated}, "
        f"skipped {report.skipped}, failed {report.failed}"
    )
    for doc_id in report.skipped_ids:
        print(f"    skipped: {doc_id}")

    if dry_run:
        print(f"  ✓ Dry run: {migration_id} ({elapsed_ms}ms)")
        return True

    repo.mark_migration_executed(migration_id, collection, elapsed_ms, report)
    print(f"  ✓ Completed: {migration_id} ({elapsed_ms}ms)")
    return True


def cmd_migrate(
    repo: MongoRepository,
    settings: Settings,
    dry_run: bool = False,
    migrations_dir: Path = MIGRATIONS_DIR,
) -> int:
    """Run all pending migrations. Returns the number of failures."""
    pending = get_pending_migrations(repo.get_executed_migrations(), migrations_dir)

    if not pending:
        print("No pending migrations.")
        return 0

    print(f"Found {len(pending)} pending migration(s):\n")

    success_count = 0
    failures = 0
    for migration_id, file_path in pending:
        if run_migration(repo, migration_id, file_path, settings, dry_run=dry_run):
            success_count += 1
            continue

        failures += 1
        if settings.fail_fast:
            print("\nStopping due to error.")
            break

    print(f"\nCompleted {success_count}/{len(pending)} migrations.")
    return failures


def cmd_status(repo: MongoRepository, migrations_dir: Path = MIGRATIONS_DIR) -> None:
    """Show migration status."""
    all_migrations = sorted(migrations_dir.glob("m_*.py"))

    if not all_migrations:
        print("No migrations found.")
        return

    history = {record.migration_id: record for record in repo.list_migration_history()}

    print("Migration Status:\n")
    for file in all_migrations:
        migration_id = file.stem
        record = history.get(migration_id)
        if record is None:
            print(f"  ○ pending   {migration_id}")
        elif record.status.value == "applied":
            print(f"  ✓ executed  {migration_id}  ({record.executed_at}, {record.execution_ms}ms)")
        else:
            print(f"  ✗ failed    {migration_id}  ({record.error})")


def cmd_create(name: str, migrations_dir: Path = MIGRATIONS_DIR) -> Path:
    """Create a new migration file."""
    # Generate migration ID with timestamp
    timestamp = datetime.now().strftime("%Y%m%d")

    # Find next sequence number for today
    existing = list(migrations_dir.glob(f"m_{timestamp}_*.py"))
    seq = len(existing) + 1

    # Sanitize name
    safe_name = name.lower().replace(" ", "_").replace("-", "_")
    migration_id = f"m_{timestamp}_{seq:03d}_{safe_name}"

    file_path = migrations_dir / f"{migration_id}.py"

    template = f'''"""
Migration: {name}
Created: {datetime.now().isoformat()}

Description:
    Describe the schema change this migration performs.
"""

from pymongo.database import Database

from docmigrate.engine.batch import DEFAULT_BATCH_SIZE
from docmigrate.engine.plan import SchemaMigration
from docmigrate.engine.runner import migrate_collection
from docmigrate.schemas.models import MigrationReport

COLLECTION = "{safe_name}"


def build_plan() -> SchemaMigration:
    return SchemaMigration(name="{migration_id}")


def upgrade(
    db: Database,
    collection_name: str = COLLECTION,
    batch_size: int = DEFAULT_BATCH_SIZE,
    dry_run: bool = False,
) -> MigrationReport:
    """
    Run the migration.

    Args:
        db: pymongo Database handle
        collection_name: Collection to migrate
        batch_size: Pending updates per bulk write
        dry_run: Scan and report without writing
    """
    return migrate_collection(db, collection_name, build_plan(), batch_size=batch_size, dry_run=dry_run)
'''

    file_path.write_text(template)
    print(f"Created migration: {file_path}")
    return file_path


def get_repository(settings: Settings) -> MongoRepository:
    repo = MongoRepository(settings)
    repo.ping()
    return repo


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="MongoDB Migration Runner")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # migrate command
    migrate_parser = subparsers.add_parser("migrate", help="Run pending migrations")
    migrate_parser.add_argument("--dry-run", action="store_true", help="Scan and report without writing")

    # status command
    subparsers.add_parser("status", help="Show migration status")

    # create command
    create_parser = subparsers.add_parser("create", help="Create new migration")
    create_parser.add_argument("name", help="Migration name (e.g., 'otps_contact_v2')")

    args = parser.parse_args(argv)

    if args.command == "create":
        cmd_create(args.name)
        return 0

    if args.command not in ("migrate", "status"):
        parser.print_help()
        return 1

    try:
        settings = load_settings()
        setup_logging(settings.log_level)
        repo = get_repository(settings)
    except DocMigrateError as e:
        print(f"✗ {e.message}")
        return 1

    try:
        if args.command == "status":
            cmd_status(repo)
            return 0

        repo.ensure_tracking_indexes()
        failures = cmd_migrate(repo, settings, dry_run=args.dry_run or settings.dry_run)
        return 1 if failures else 0
    except StoreUnavailableError as e:
        print(f"\n✗ Migration aborted: {e.message}")
        return 1
    finally:
        repo.close()


if __name__ == "__main__":
    sys.exit(main())
