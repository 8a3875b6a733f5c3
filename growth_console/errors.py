from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from growth_console.backup import ImportReport


class GrowthConsoleError(Exception):
    """Base class for all errors raised by the package."""


class StorageError(GrowthConsoleError):
    """Raised when the record store cannot complete an operation."""


class StorageUnavailable(StorageError):
    """The persistent medium could not be opened or reached."""


class DuplicateKey(StorageError):
    def __init__(self, collection: str, record_id: str) -> None:
        super().__init__(f"Record {record_id!r} already exists in {collection!r}")
        self.collection = collection
        self.record_id = record_id


class NotFound(StorageError):
    def __init__(self, collection: str, record_id: str) -> None:
        super().__init__(f"Record {record_id!r} not found in {collection!r}")
        self.collection = collection
        self.record_id = record_id


class UnknownCollection(StorageError, KeyError):
    def __init__(self, collection: str) -> None:
        super().__init__(f"Unknown collection: {collection!r}")
        self.collection = collection

    def __str__(self) -> str:
        return str(self.args[0])


class MalformedBundle(GrowthConsoleError, ValueError):
    """Backup payload is not valid JSON or violates the bundle layout."""


class PartialImport(GrowthConsoleError):
    """One or more collections failed to restore while others succeeded."""

    def __init__(self, report: "ImportReport") -> None:
        failed = ", ".join(sorted(report.failed)) or "-"
        super().__init__(f"Import failed for collections: {failed}")
        self.report = report


class InvalidPlanTransition(GrowthConsoleError):
    """The plan session received an action its current state does not allow."""


__all__ = [
    "GrowthConsoleError",
    "StorageError",
    "StorageUnavailable",
    "DuplicateKey",
    "NotFound",
    "UnknownCollection",
    "MalformedBundle",
    "PartialImport",
    "InvalidPlanTransition",
]
