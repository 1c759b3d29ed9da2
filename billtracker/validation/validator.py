"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence (name, amount, due date)
- Type and format checks (numeric non-negative amount, ISO date)
- Enum membership (frequency)
- Failures here are errors and block the operation

STAGE 2 - SEMANTIC VALIDATION:
- Category outside the suggested set
- Suspiciously large amount
- Failures here are warnings; they are logged, never raised

IMPORTANT: Validation NEVER silently fixes issues in required fields.
Optional fields fall back to their documented defaults.
"""

from decimal import Decimal
from typing import Any, Mapping, Optional, TypeVar, Union

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from billtracker.errors import ValidationError
from billtracker.models.bill import (
    BillDraft,
    BillUpdate,
    ImportedBill,
    ValidationIssue,
    ValidationResult,
    is_known_category,
)


ModelT = TypeVar("ModelT", bound=BaseModel)

REQUIRED_FIELDS = ("name", "amount", "dueDate")

_SUGGESTED_FIXES = {
    "name": "Enter the bill name",
    "amount": "Enter a number of zero or more, e.g. 49.99",
    "dueDate": "Use the YYYY-MM-DD format, e.g. 2024-01-15",
    "frequency": "Use one of: one-time, weekly, biweekly, monthly, quarterly, yearly",
}


def issues_from_pydantic(error: PydanticValidationError) -> list[ValidationIssue]:
    """Translate pydantic errors into validation issues keyed by wire field name."""
    issues = []
    for detail in error.errors():
        loc = detail.get("loc") or ("record",)
        field = ".".join(str(part) for part in loc)
        issue_type = "missing" if detail["type"] == "missing" else "invalid_value"
        issues.append(ValidationIssue(
            field=field,
            issue_type=issue_type,
            message=detail["msg"],
            severity="error",
            suggested_fix=_SUGGESTED_FIXES.get(field),
        ))
    return issues


class BillValidator:
    """
    Validates bill input through a two-stage pipeline.

    Stage 1: Schema validation (builds the request model)
    Stage 2: Semantic validation (warnings only)
    """

    def __init__(self, max_bill_amount: float = 1000000.0):
        self._max_amount = Decimal(str(max_bill_amount))
        self._logger = structlog.get_logger(__name__)

    def _check_required(self, data: Mapping[str, Any]) -> list[ValidationIssue]:
        """Required fields must be present and non-blank, in either spelling."""
        issues = []
        for field in REQUIRED_FIELDS:
            snake = "due_date" if field == "dueDate" else field
            value = data.get(field, data.get(snake))
            if value is None or (isinstance(value, str) and not value.strip()):
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="missing",
                    message=f"{field} is required",
                    severity="error",
                    suggested_fix=_SUGGESTED_FIXES[field],
                ))
        return issues

    def _validate_schema(
        self,
        model: type[ModelT],
        data: Union[Mapping[str, Any], ModelT],
    ) -> tuple[Optional[ModelT], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (parsed_model_or_None, list_of_issues)
        """
        if isinstance(data, model):
            return data, []
        if not isinstance(data, Mapping):
            return None, [ValidationIssue(
                field="record",
                issue_type="invalid_type",
                message=f"Expected an object, got {type(data).__name__}",
                severity="error",
            )]

        # Updates carry no required fields
        if model is not BillUpdate:
            issues = self._check_required(data)
            if issues:
                return None, issues

        try:
            return model.model_validate(dict(data)), []
        except PydanticValidationError as e:
            return None, issues_from_pydantic(e)

    def _validate_semantic(self, parsed: BaseModel) -> list[ValidationIssue]:
        """
        Stage 2: Semantic validation.

        Returns non-blocking warnings only.
        """
        issues = []

        category = getattr(parsed, "category", None)
        if category and not is_known_category(category):
            issues.append(ValidationIssue(
                field="category",
                issue_type="unknown_category",
                message=f"Category '{category}' is not one of the suggested categories",
                severity="warning",
            ))

        amount = getattr(parsed, "amount", None)
        if amount is not None and amount > self._max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({amount:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        return issues

    def validate(
        self,
        model: type[ModelT],
        data: Union[Mapping[str, Any], ModelT],
    ) -> tuple[Optional[ModelT], ValidationResult]:
        """
        Run both stages.

        Stage 2 is skipped when stage 1 fails.
        """
        parsed, issues = self._validate_schema(model, data)
        if parsed is not None:
            issues.extend(self._validate_semantic(parsed))
        return parsed, ValidationResult(schema_valid=parsed is not None, issues=issues)

    def require(
        self,
        model: type[ModelT],
        data: Union[Mapping[str, Any], ModelT],
        context: str = "bill",
    ) -> ModelT:
        """
        Validate and return the parsed model.

        Raises:
            ValidationError: If stage 1 produced any error
        """
        parsed, result = self.validate(model, data)
        if result.has_errors or parsed is None:
            fields = ", ".join(issue.field for issue in result.errors)
            raise ValidationError(f"Invalid {context}: {fields}", result.errors)

        for warning in result.warnings:
            self._logger.warning(
                "validation_warning",
                context=context,
                field=warning.field,
                issue_type=warning.issue_type,
                message=warning.message,
            )
        return parsed

    def draft(self, data: Union[Mapping[str, Any], BillDraft]) -> BillDraft:
        return self.require(BillDraft, data, "bill")

    def update(self, data: Union[Mapping[str, Any], BillUpdate]) -> BillUpdate:
        return self.require(BillUpdate, data, "update")

    def imported(self, data: Any) -> ImportedBill:
        return self.require(ImportedBill, data, "imported bill")
