"""
Error taxonomy for bill operations.

Every failure is raised synchronously to the caller. The caller
(UI or chat layer) decides how to present it.

    BillTrackerError
    ├── ValidationError       required field missing or malformed
    ├── NotFoundError         unknown bill id
    ├── InvalidOperationError operation not valid for the bill's state
    └── FormatError           import payload / stored data unreadable
"""

from typing import Iterable, Optional, Union

from billtracker.models.bill import ValidationIssue


class BillTrackerError(Exception):
    """Base exception for bill operations."""
    pass


class ValidationError(BillTrackerError):
    """Input failed validation. No mutation was applied."""

    def __init__(
        self,
        message: str,
        issues: Optional[Iterable[ValidationIssue]] = None,
    ):
        super().__init__(message)
        self.issues: list[ValidationIssue] = list(issues or [])

    def to_dict(self) -> dict:
        return {
            "message": str(self),
            "issues": [issue.model_dump() for issue in self.issues],
        }


class NotFoundError(BillTrackerError):
    """One or more bill ids do not exist."""

    def __init__(self, bill_ids: Union[int, Iterable[int]]):
        if isinstance(bill_ids, int):
            bill_ids = [bill_ids]
        self.bill_ids: list[int] = list(bill_ids)
        if len(self.bill_ids) == 1:
            message = f"Bill {self.bill_ids[0]} not found"
        else:
            joined = ", ".join(str(bill_id) for bill_id in self.bill_ids)
            message = f"Bills not found: {joined}"
        super().__init__(message)

    @property
    def bill_id(self) -> int:
        return self.bill_ids[0]


class InvalidOperationError(BillTrackerError):
    """Operation is not valid for the bill's current state."""
    pass


class FormatError(BillTrackerError):
    """Payload is not parseable or not the expected shape."""
    pass
