"""
MongoDB Repository

Connection handling and migration tracking for the runner.

Data Structure:
    _migrations/{migration_id}   - One entry per executed migration script
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import ConnectionFailure

from docmigrate.core.config import Settings
from docmigrate.core.exceptions import StoreUnavailableError
from docmigrate.core.logging import get_logger
from docmigrate.schemas.models import MigrationRecord, MigrationReport, MigrationStatus

logger = get_logger("docmigrate.repositories.mongo")

MIGRATIONS_COLLECTION = "_migrations"


class MongoRepository:
    """Repository giving the runner a database handle and a migration ledger."""

    def __init__(self, settings: Settings, client: Optional[MongoClient] = None) -> None:
        self.settings = settings
        self.client = client or MongoClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=settings.timeout_ms,
        )
        self.db: Database = self.client[settings.db_name]
        self.migrations = self.db[MIGRATIONS_COLLECTION]

    def ping(self) -> None:
        """
        Verify the server is reachable.

        Raises:
            StoreUnavailableError: If the server cannot be reached
        """
        try:
            self.client.admin.command("ping")
        except ConnectionFailure as e:
            raise StoreUnavailableError(
                f"Cannot reach MongoDB at {self.settings.mongo_uri}: {e}",
                details={"db_name": self.settings.db_name},
            ) from e
        logger.info(f"Connected to database: {self.settings.db_name}")

    def close(self) -> None:
        self.client.close()

    # =========================================================================
    # Migration Tracking
    # =========================================================================

    def ensure_tracking_indexes(self) -> None:
        """Create the indexes the tracking collection is queried by."""
        self.migrations.create_index([("executed_at", DESCENDING)], name="executed_at_desc")
        self.migrations.create_index([("status", ASCENDING)], name="status_index")

    def get_executed_migrations(self) -> set[str]:
        """Get IDs of migrations that completed successfully."""
        docs = self.migrations.find({"status": MigrationStatus.APPLIED.value}, projection=["_id"])
        return {doc["_id"] for doc in docs}

    def list_migration_history(self) -> list[MigrationRecord]:
        """All tracking entries, most recent first."""
        docs = self.migrations.find({}).sort("executed_at", DESCENDING)
        return [self._to_record(doc) for doc in docs]

    def mark_migration_executed(
        self,
        migration_id: str,
        collection: str,
        execution_ms: int,
        report: Optional[MigrationReport] = None,
    ) -> MigrationRecord:
        """Record a successful migration."""
        record = MigrationRecord(
            migration_id=migration_id,
            collection=collection,
            status=MigrationStatus.APPLIED,
            executed_at=datetime.now(timezone.utc).isoformat(),
            execution_ms=execution_ms,
            report=report.summary() if report else {},
        )
        self._save(record)
        return record

    def mark_migration_failed(
        self,
        migration_id: str,
        collection: str,
        execution_ms: int,
        error: Exception,
    ) -> MigrationRecord:
        """Record a failed migration so `status` can show it."""
        record = MigrationRecord(
            migration_id=migration_id,
            collection=collection,
            status=MigrationStatus.FAILED,
            executed_at=datetime.now(timezone.utc).isoformat(),
            execution_ms=execution_ms,
            error=str(error),
        )
        self._save(record)
        return record

    def _save(self, record: MigrationRecord) -> None:
        payload = record.model_dump(mode="json", exclude={"migration_id"})
        self.migrations.replace_one({"_id": record.migration_id}, payload, upsert=True)

    @staticmethod
    def _to_record(doc: dict[str, Any]) -> MigrationRecord:
        data = dict(doc)
        data["migration_id"] = data.pop("_id")
        return MigrationRecord(**data)
