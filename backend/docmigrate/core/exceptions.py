"""Custom exceptions for the docmigrate engine."""

from __future__ import annotations


class DocMigrateError(Exception):
    """Base exception for all docmigrate errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StoreUnavailableError(DocMigrateError):
    """Raised when the document store cannot be reached during a run."""

    pass


class MigrationScriptError(DocMigrateError):
    """Raised when a migration script cannot be loaded or run."""

    def __init__(self, message: str, migration_id: str = "", details: dict | None = None) -> None:
        super().__init__(message, details)
        self.migration_id = migration_id


class ConfigurationError(DocMigrateError):
    """Raised when settings are invalid."""

    pass
