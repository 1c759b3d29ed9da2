"""
Storage Services Package

Provides the key-value storage interface, its implementations and the
bill store that persists the bill collection through it.
"""

from billtracker.services.storage.interface import (
    AuditStorageInterface,
    KeyValueStorage,
    StorageError,
)
from billtracker.services.storage.memory import InMemoryStorage
from billtracker.services.storage.json_file import JsonFileStorage
from billtracker.services.storage.audit_store import KeyValueAuditStorage
from billtracker.services.storage.bill_store import DEFAULT_BILLS_KEY, BillStore

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "KeyValueStorage",
    # Exceptions
    "StorageError",
    # Implementations
    "InMemoryStorage",
    "JsonFileStorage",
    "KeyValueAuditStorage",
    # Bill collection
    "BillStore",
    "DEFAULT_BILLS_KEY",
]
