"""Services package."""

from billtracker.services.storage import (
    AuditStorageInterface,
    BillStore,
    InMemoryStorage,
    JsonFileStorage,
    KeyValueAuditStorage,
    KeyValueStorage,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "BillStore",
    "InMemoryStorage",
    "JsonFileStorage",
    "KeyValueAuditStorage",
    "KeyValueStorage",
    "StorageError",
]
