"""Validation package."""

from billtracker.validation.validator import BillValidator, issues_from_pydantic

__all__ = ["BillValidator", "issues_from_pydantic"]
