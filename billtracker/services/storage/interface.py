"""
Abstract Storage Interface

Persistence is an opaque, synchronous key -> string map (the shape of
browser local storage). Implementations: InMemoryStorage, JsonFileStorage.

Whole values are overwritten; there are no partial updates.
"""

from abc import ABC, abstractmethod
from typing import Optional

from billtracker.models.audit import AuditEvent


class KeyValueStorage(ABC):
    """
    Abstract key -> string storage.

    Any storage implementation must implement these methods.
    Failures raise StorageError and are never swallowed.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Args:
            key: Storage key

        Returns:
            The stored string, or None if the key was never written

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Overwrite the value stored under a key.

        Args:
            key: Storage key
            value: Full replacement value

        Raises:
            StorageError: If the backend cannot be written
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_for_bill(self, bill_id: int) -> list[dict]:
        """
        Get all stored events for one bill, oldest first.
        """
        pass

    @abstractmethod
    def get_recent_events(self, limit: int = 100) -> list[dict]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass
