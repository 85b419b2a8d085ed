"""Exception hierarchy for novelsync."""

from __future__ import annotations

from typing import Optional


class NovelSyncError(Exception):
    """Base exception for all synchronization errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# ---- Source errors ----

class UnknownSource(NovelSyncError):
    """No plugin is registered under the requested source id."""

    def __init__(self, source_id: str):
        super().__init__(f"Unknown plugin: {source_id}", {"source_id": source_id})
        self.source_id = source_id


class UnsupportedOperation(NovelSyncError):
    """The plugin exists but lacks an optional capability."""

    def __init__(self, source_id: str, operation: str):
        super().__init__(
            f"Plugin {source_id} does not support {operation}",
            {"source_id": source_id, "operation": operation},
        )
        self.source_id = source_id
        self.operation = operation


class FetchFailure(NovelSyncError):
    """A plugin operation failed with a transport or parse error."""

    def __init__(self, source_id: str, operation: str, cause: BaseException):
        super().__init__(
            f"{operation} failed for plugin {source_id}: {cause}",
            {"source_id": source_id, "operation": operation},
        )
        self.source_id = source_id
        self.operation = operation
        self.cause = cause


# ---- Storage errors ----

class PersistenceFailure(NovelSyncError):
    """A database statement or transaction failed."""

    def __init__(self, operation: str, cause: BaseException):
        super().__init__(f"Database {operation} failed: {cause}", {"operation": operation})
        self.operation = operation
        self.cause = cause


class FileSystemFailure(NovelSyncError):
    """A file cache operation failed."""

    def __init__(self, path: str, operation: str, cause: BaseException):
        super().__init__(
            f"{operation} failed for {path}: {cause}",
            {"path": path, "operation": operation},
        )
        self.path = path
        self.operation = operation
        self.cause = cause
