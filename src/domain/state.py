from __future__ import annotations

from dataclasses import dataclass, field

from domain.catalog import DEFAULT_BUDGET_ALERT_THRESHOLD, DEFAULT_CURRENCY_CODE
from domain.schemas import Budget, CategoryOverride, RecurringTransaction, Transaction


@dataclass
class AppState:
    """In-memory application state; the key-value store mirrors it after every mutation."""

    transactions: list[Transaction] = field(default_factory=list)
    recurring_transactions: list[RecurringTransaction] = field(default_factory=list)
    budgets: list[Budget] = field(default_factory=list)
    category_overrides: list[CategoryOverride] = field(default_factory=list)
    selected_currency: str = DEFAULT_CURRENCY_CODE
    budget_alert_threshold: int = DEFAULT_BUDGET_ALERT_THRESHOLD
