"""
Bill Store

Owns the in-memory bill collection, the id sequence and the
load/save boundary to the key-value backend.

The whole collection is serialized under one key and rewritten on
every change.

The id counter is not stored. On load it is rebuilt as the largest
live id, so ids stay monotonic within a session.
"""

from datetime import date, datetime
from typing import Callable, Iterable, Iterator, Optional

import structlog
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from billtracker.errors import FormatError, NotFoundError
from billtracker.models.bill import Bill
from billtracker.services.storage.interface import KeyValueStorage
from billtracker.utils.dates import local_now


DEFAULT_BILLS_KEY = "billtracker_bills"

_BILL_LIST = TypeAdapter(list[Bill])

logger = structlog.get_logger(__name__)


class BillStore:
    """
    Single owner of the bill collection.

    No other component edits bills directly; mutations go through
    commit(), which applies a change set and persists it in one save.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        key: str = DEFAULT_BILLS_KEY,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            storage: Key-value backend
            key: Key holding the serialized collection
            clock: Returns the current aware datetime. Injectable for tests.
        """
        self._storage = storage
        self._key = key
        self._clock = clock or local_now
        self._bills: list[Bill] = []
        self._last_id = 0

    # -------------------------------------------------------------------------
    # Load / save boundary
    # -------------------------------------------------------------------------

    def load(self) -> list[Bill]:
        """
        Replace the in-memory collection with the persisted one.

        An absent key means an empty collection. Storage errors propagate.

        Raises:
            FormatError: If the persisted data is not a valid bill list
        """
        raw = self._storage.get(self._key)
        if raw is None or not raw.strip():
            bills: list[Bill] = []
        else:
            try:
                bills = _BILL_LIST.validate_json(raw)
            except PydanticValidationError as e:
                raise FormatError(
                    f"Stored bills under '{self._key}' are corrupt: {e.error_count()} errors"
                ) from e

        seen: set[int] = set()
        for bill in bills:
            if bill.id in seen:
                raise FormatError(f"Stored bills under '{self._key}' repeat id {bill.id}")
            seen.add(bill.id)

        self._bills = bills
        self._last_id = max(seen, default=0)
        logger.debug("bills_loaded", key=self._key, count=len(bills), last_id=self._last_id)
        return self.all()

    def save(self) -> None:
        """Serialize the whole collection, overwriting prior content."""
        payload = _BILL_LIST.dump_json(self._bills, by_alias=True).decode("utf-8")
        self._storage.set(self._key, payload)

    def commit(
        self,
        added: Iterable[Bill] = (),
        replaced: Iterable[Bill] = (),
        removed: Iterable[int] = (),
    ) -> None:
        """
        Apply a change set to the collection and save it once.

        If the save fails, the in-memory collection is restored and the
        storage error propagates. Ids allocated for the failed change set
        are not handed out again.
        """
        snapshot = list(self._bills)

        try:
            replacements = {bill.id: bill for bill in replaced}
            removed_ids = set(removed)
            self._bills = [
                replacements.get(bill.id, bill)
                for bill in self._bills
                if bill.id not in removed_ids
            ]
            self._bills.extend(added)
            self.save()
        except Exception:
            self._bills = snapshot
            raise

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get(self, bill_id: int) -> Optional[Bill]:
        """Return the bill, or None if the id is unknown."""
        for bill in self._bills:
            if bill.id == bill_id:
                return bill
        return None

    def require(self, bill_id: int) -> Bill:
        """
        Return the bill for a mutation.

        Raises:
            NotFoundError: If the id is unknown
        """
        bill = self.get(bill_id)
        if bill is None:
            raise NotFoundError(bill_id)
        return bill

    def all(self) -> list[Bill]:
        """Snapshot of the collection in insertion order."""
        return list(self._bills)

    def __len__(self) -> int:
        return len(self._bills)

    def __iter__(self) -> Iterator[Bill]:
        return iter(list(self._bills))

    def __contains__(self, bill_id: object) -> bool:
        return any(bill.id == bill_id for bill in self._bills)

    # -------------------------------------------------------------------------
    # Ids and time
    # -------------------------------------------------------------------------

    def allocate_id(self) -> int:
        """Next id in the sequence. Never hands out the same id twice."""
        self._last_id += 1
        return self._last_id

    @property
    def last_id(self) -> int:
        return self._last_id

    @property
    def key(self) -> str:
        return self._key

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> date:
        return self._clock().date()
