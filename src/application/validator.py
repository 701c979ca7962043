from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from domain.catalog import DEFAULT_CATEGORIES, find_currency
from domain.models import Frequency
from domain.schemas import BudgetInput, RecurringTransactionInput, TransactionInput


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    message: str
    path: str = ""
    severity: str = "error"  # "error" | "warn"


class InvalidInputError(ValueError):
    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(issue.message for issue in issues) or "Invalid input")


class ValidatorService:
    """
    Synchronous input checks run before any mutation.

    Covers:
      - description present
      - amount is a positive, finite number
      - date / start date present
      - currency code known to the catalog
      - recurrence frequency is one of the supported steps
    """

    def validate_transaction(self, data: TransactionInput) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        self._check_description(data.description, issues)
        self._check_amount(data.amount, issues)
        if data.date is None:
            issues.append(ValidationIssue(code="MISSING_DATE", message="Date is required.", path="date"))
        self._check_currency(data.currency_code, issues)
        self._check_category(data.category, issues)
        return issues

    def validate_recurring(self, data: RecurringTransactionInput) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        self._check_description(data.description, issues)
        self._check_amount(data.amount, issues)
        if data.start_date is None:
            issues.append(ValidationIssue(code="MISSING_START_DATE", message="Start Date is required.", path="start_date"))
        if data.frequency.strip().lower() not in {f.value for f in Frequency}:
            issues.append(ValidationIssue(
                code="UNKNOWN_FREQUENCY",
                message=f"Frequency must be one of: {', '.join(f.value for f in Frequency)}.",
                path="frequency",
            ))
        self._check_currency(data.currency_code, issues)
        self._check_category(data.category, issues)
        return issues

    def validate_budget(self, data: BudgetInput) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        if not data.category.strip():
            issues.append(ValidationIssue(code="MISSING_CATEGORY", message="Category is required.", path="category"))
        if data.amount is None or not data.amount.is_finite() or data.amount <= 0:
            issues.append(ValidationIssue(
                code="INVALID_AMOUNT",
                message="Please enter a valid amount greater than zero.",
                path="amount",
            ))
        return issues

    def _check_description(self, description: str, issues: list[ValidationIssue]) -> None:
        if not description.strip():
            issues.append(ValidationIssue(code="MISSING_DESCRIPTION", message="Description is required.", path="description"))

    def _check_amount(self, amount: Decimal | None, issues: list[ValidationIssue]) -> None:
        if amount is None or not amount.is_finite() or amount <= 0:
            issues.append(ValidationIssue(code="INVALID_AMOUNT", message="Amount must be a positive number.", path="amount"))

    def _check_category(self, category: str, issues: list[ValidationIssue]) -> None:
        if category not in DEFAULT_CATEGORIES:
            issues.append(ValidationIssue(
                code="NON_DEFAULT_CATEGORY",
                message=f"Category {category!r} is not one of the default categories",
                path="category",
                severity="warn",
            ))

    def _check_currency(self, code: str, issues: list[ValidationIssue]) -> None:
        if find_currency(code) is None:
            issues.append(ValidationIssue(
                code="UNKNOWN_CURRENCY",
                message=f"Unsupported currency code: {code!r}",
                path="currency_code",
            ))


def blocking(issues: list[ValidationIssue]) -> list[ValidationIssue]:
    return [issue for issue in issues if issue.severity == "error"]
