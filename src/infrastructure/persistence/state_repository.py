from __future__ import annotations

import json
import logging
from typing import Any, Sequence, TypeVar

from pydantic import TypeAdapter, ValidationError

from domain.catalog import (
    BUDGET_ALERT_THRESHOLD_STEP,
    DEFAULT_BUDGET_ALERT_THRESHOLD,
    DEFAULT_CURRENCY_CODE,
    MAX_BUDGET_ALERT_THRESHOLD,
    MIN_BUDGET_ALERT_THRESHOLD,
    find_currency,
)
from domain.schemas import Budget, CategoryOverride, RecurringTransaction, StoredModel, Transaction
from domain.state import AppState
from infrastructure.persistence.store import KeyValueStore, StoreError

logger = logging.getLogger(__name__)

TRANSACTIONS_KEY = "smartExpenseTransactions"
RECURRING_KEY = "smartExpenseRecurringTransactions"
BUDGETS_KEY = "smartExpenseBudgets"
OVERRIDES_KEY = "smartExpenseCategoryOverrides"
CURRENCY_KEY = "smartExpenseSelectedCurrency"
THRESHOLD_KEY = "smartExpenseBudgetAlertPercentage"

M = TypeVar("M", bound=StoredModel)


class StateRepository:
    """Loads AppState from a key-value store and writes single collections back."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    @property
    def store(self) -> KeyValueStore:
        return self._store

    def load(self) -> AppState:
        state = AppState(
            transactions=self._load_list(TRANSACTIONS_KEY, Transaction),
            recurring_transactions=self._load_list(RECURRING_KEY, RecurringTransaction),
            budgets=self._load_list(BUDGETS_KEY, Budget),
            category_overrides=self._load_list(OVERRIDES_KEY, CategoryOverride),
            selected_currency=self._load_currency(),
            budget_alert_threshold=self._load_threshold(),
        )
        logger.info(
            "State loaded transactions=%d recurring=%d budgets=%d overrides=%d currency=%s threshold=%d",
            len(state.transactions),
            len(state.recurring_transactions),
            len(state.budgets),
            len(state.category_overrides),
            state.selected_currency,
            state.budget_alert_threshold,
        )
        return state

    def save_transactions(self, transactions: Sequence[Transaction]) -> None:
        self._save_list(TRANSACTIONS_KEY, transactions)

    def save_recurring(self, rules: Sequence[RecurringTransaction]) -> None:
        self._save_list(RECURRING_KEY, rules)

    def save_budgets(self, budgets: Sequence[Budget]) -> None:
        self._save_list(BUDGETS_KEY, budgets)

    def save_overrides(self, overrides: Sequence[CategoryOverride]) -> None:
        self._save_list(OVERRIDES_KEY, overrides)

    def save_currency(self, code: str) -> None:
        self._store.set(CURRENCY_KEY, code)

    def save_threshold(self, threshold: int) -> None:
        self._store.set(THRESHOLD_KEY, str(threshold))

    def save_all(self, state: AppState) -> None:
        self.save_transactions(state.transactions)
        self.save_recurring(state.recurring_transactions)
        self.save_budgets(state.budgets)
        self.save_overrides(state.category_overrides)
        self.save_currency(state.selected_currency)
        self.save_threshold(state.budget_alert_threshold)

    def _save_list(self, key: str, items: Sequence[StoredModel]) -> None:
        self._store.set(key, json.dumps([item.to_storage() for item in items]))
        logger.debug("State saved key=%s items=%d", key, len(items))

    def _load_list(self, key: str, model: type[M]) -> list[M]:
        raw = self._store.get(key)
        if not raw:
            return []
        try:
            payload: Any = json.loads(raw)
            return TypeAdapter(list[model]).validate_python(payload)
        except (json.JSONDecodeError, ValidationError) as exc:
            raise StoreError(f"Stored value for {key} does not match {model.__name__}: {exc}") from exc

    def _load_currency(self) -> str:
        raw = (self._store.get(CURRENCY_KEY) or "").strip().upper()
        if raw and find_currency(raw) is not None:
            return raw
        return DEFAULT_CURRENCY_CODE

    def _load_threshold(self) -> int:
        raw = self._store.get(THRESHOLD_KEY)
        if not raw:
            return DEFAULT_BUDGET_ALERT_THRESHOLD
        try:
            value = int(float(raw))
        except (ValueError, OverflowError):
            logger.warning("Stored budget alert threshold %r is not a number; using default", raw)
            return DEFAULT_BUDGET_ALERT_THRESHOLD
        if (
            not MIN_BUDGET_ALERT_THRESHOLD <= value <= MAX_BUDGET_ALERT_THRESHOLD
            or value % BUDGET_ALERT_THRESHOLD_STEP
        ):
            logger.warning("Stored budget alert threshold %d is out of range; using default", value)
            return DEFAULT_BUDGET_ALERT_THRESHOLD
        return value
