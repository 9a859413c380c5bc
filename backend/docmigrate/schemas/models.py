"""
Migration Models

Pydantic models for run reports and migration tracking entries.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class WriteFailure(BaseModel):
    """A single update rejected inside an unordered bulk write."""

    document_id: Any
    code: Optional[int] = None
    message: str = ""


class MigrationReport(BaseModel):
    """Counters for one engine run over one collection."""

    collection: str
    examined: int = 0
    updated: int = Field(default=0, description="Documents with a non-empty change set queued for writing.")
    skipped: int = Field(default=0, description="Documents that could not be classified or normalized.")
    failed: int = Field(default=0, description="Queued updates rejected by the store.")
    modified: int = Field(default=0, description="Documents the store reports as changed; 0 on a dry run.")
    acknowledged: bool = True
    dry_run: bool = False
    skipped_ids: list[Any] = []
    failures: list[WriteFailure] = []
    retired_indexes: dict[str, str] = {}
    ensured_indexes: dict[str, str] = {}

    @property
    def matched_count(self) -> int:
        return self.examined

    @property
    def modified_count(self) -> int:
        return self.modified

    @property
    def failed_ids(self) -> list[Any]:
        return [failure.document_id for failure in self.failures]

    def as_result(self) -> dict[str, Any]:
        """Return the summary shape callers of a migration script rely on."""
        return {
            "acknowledged": self.acknowledged,
            "matchedCount": self.matched_count,
            "modifiedCount": self.modified_count,
        }

    def summary(self) -> dict[str, Any]:
        """Storable summary without per-document detail."""
        return {
            "collection": self.collection,
            "examined": self.examined,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "modified": self.modified,
            "acknowledged": self.acknowledged,
            "dry_run": self.dry_run,
        }


class MigrationStatus(str, Enum):
    APPLIED = "applied"
    FAILED = "failed"


class MigrationRecord(BaseModel):
    """Entry in the migration tracking collection."""

    migration_id: str
    collection: str
    status: MigrationStatus
    executed_at: str
    execution_ms: int = 0
    error: Optional[str] = None
    report: dict[str, Any] = {}
