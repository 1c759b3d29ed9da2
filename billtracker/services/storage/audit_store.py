"""
Audit trail persisted in the key-value backend.

Events are kept as a JSON array under their own key, next to the
bill collection, and trimmed to the newest `max_events`.
"""

import json
from typing import Optional

from billtracker.models.audit import AuditEvent
from billtracker.services.storage.interface import (
    AuditStorageInterface,
    KeyValueStorage,
    StorageError,
)


class KeyValueAuditStorage(AuditStorageInterface):
    """Append-only audit log stored under a single key."""

    def __init__(
        self,
        storage: KeyValueStorage,
        key: str = "billtracker_audit",
        max_events: int = 1000,
    ):
        self._storage = storage
        self._key = key
        self._max_events = max_events

    def _read(self) -> list[dict]:
        raw: Optional[str] = self._storage.get(self._key)
        if not raw:
            return []
        try:
            events = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Audit log under '{self._key}' is not valid JSON: {e}") from e
        if not isinstance(events, list):
            raise StorageError(f"Audit log under '{self._key}' is not a JSON array")
        return events

    def append_event(self, event: AuditEvent) -> bool:
        events = self._read()
        events.append(json.loads(event.to_storage_json()))
        if len(events) > self._max_events:
            events = events[-self._max_events:]
        self._storage.set(self._key, json.dumps(events))
        return True

    def get_events_for_bill(self, bill_id: int) -> list[dict]:
        return [event for event in self._read() if event.get("bill_id") == bill_id]

    def get_recent_events(self, limit: int = 100) -> list[dict]:
        return list(reversed(self._read()))[:limit]
