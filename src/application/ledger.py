from __future__ import annotations

import logging
import uuid
from typing import Iterable

from application.categorization import record_override
from application.summary import validate_threshold
from application.validator import InvalidInputError, ValidatorService, blocking
from domain.catalog import find_currency
from domain.models import TransactionType
from domain.schemas import (
    Budget,
    BudgetInput,
    RecurringTransaction,
    RecurringTransactionInput,
    Transaction,
    TransactionFilter,
    TransactionInput,
)
from domain.state import AppState
from infrastructure.currency.rates import UnsupportedCurrencyError
from infrastructure.persistence.state_repository import StateRepository

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


def _clean_notes(notes: str | None) -> str | None:
    if notes is None or not notes.strip():
        return None
    return notes.strip()


class LedgerService:
    """
    All user mutations of AppState. Each one validates first, computes the next
    collection, assigns it to the state and writes that collection through.
    """

    def __init__(self, state: AppState, repository: StateRepository, validator: ValidatorService | None = None):
        self._state = state
        self._repository = repository
        self._validator = validator or ValidatorService()

    @property
    def state(self) -> AppState:
        return self._state

    # ---- transactions ----
    def add_transaction(self, data: TransactionInput) -> Transaction:
        self._raise_on_errors(self._validator.validate_transaction(data))
        tx = self._build_transaction(_new_id(), data)
        self._state.transactions = [*self._state.transactions, tx]
        self._repository.save_transactions(self._state.transactions)
        self.record_category_choice(data.description, data.category, data.ai_suggested_category, data.override_confirmed)
        logger.info("Transaction added id=%s type=%s currency=%s", tx.id, tx.type.value, tx.currency_code)
        return tx

    def update_transaction(self, tx_id: str, data: TransactionInput) -> Transaction:
        if not any(tx.id == tx_id for tx in self._state.transactions):
            raise KeyError(f"Transaction not found: {tx_id}")
        self._raise_on_errors(self._validator.validate_transaction(data))
        replacement = self._build_transaction(tx_id, data)
        self._state.transactions = [replacement if tx.id == tx_id else tx for tx in self._state.transactions]
        self._repository.save_transactions(self._state.transactions)
        self.record_category_choice(data.description, data.category, data.ai_suggested_category, data.override_confirmed)
        logger.info("Transaction replaced id=%s", tx_id)
        return replacement

    def delete_transactions(self, ids: str | Iterable[str]) -> int:
        doomed = {ids} if isinstance(ids, str) else set(ids)
        before = len(self._state.transactions)
        self._state.transactions = [tx for tx in self._state.transactions if tx.id not in doomed]
        removed = before - len(self._state.transactions)
        self._repository.save_transactions(self._state.transactions)
        logger.info("Transactions deleted requested=%d removed=%d", len(doomed), removed)
        return removed

    def get_transaction(self, tx_id: str) -> Transaction:
        for tx in self._state.transactions:
            if tx.id == tx_id:
                return tx
        raise KeyError(f"Transaction not found: {tx_id}")

    def list_transactions(self, query: TransactionFilter | None = None) -> list[Transaction]:
        query = query or TransactionFilter()
        rows = [tx for tx in self._state.transactions if self._matches(tx, query)]
        # Ties on date always order by id ascending, whatever the sort direction.
        rows.sort(key=lambda tx: tx.id)
        rows.sort(key=lambda tx: tx.date, reverse=query.sort_order == "desc")
        return rows

    # ---- recurring transactions ----
    def add_recurring(self, data: RecurringTransactionInput) -> RecurringTransaction:
        self._raise_on_errors(self._validator.validate_recurring(data))
        rule = self._build_rule(_new_id(), data, next_occurrence=data.start_date)
        self._state.recurring_transactions = [*self._state.recurring_transactions, rule]
        self._repository.save_recurring(self._state.recurring_transactions)
        self.record_category_choice(data.description, data.category, data.ai_suggested_category, data.override_confirmed)
        logger.info("Recurring rule added id=%s frequency=%s start=%s", rule.id, rule.frequency, rule.start_date)
        return rule

    def update_recurring(self, rule_id: str, data: RecurringTransactionInput) -> RecurringTransaction:
        current = next((r for r in self._state.recurring_transactions if r.id == rule_id), None)
        if current is None:
            raise KeyError(f"Recurring transaction not found: {rule_id}")
        self._raise_on_errors(self._validator.validate_recurring(data))
        rule = self._build_rule(rule_id, data, next_occurrence=current.next_occurrence_date)
        self._state.recurring_transactions = [
            rule if r.id == rule_id else r for r in self._state.recurring_transactions
        ]
        self._repository.save_recurring(self._state.recurring_transactions)
        self.record_category_choice(data.description, data.category, data.ai_suggested_category, data.override_confirmed)
        logger.info("Recurring rule replaced id=%s", rule_id)
        return rule

    def delete_recurring(self, rule_id: str) -> bool:
        before = len(self._state.recurring_transactions)
        self._state.recurring_transactions = [r for r in self._state.recurring_transactions if r.id != rule_id]
        removed = len(self._state.recurring_transactions) != before
        self._repository.save_recurring(self._state.recurring_transactions)
        return removed

    # ---- budgets ----
    def save_budget(self, data: BudgetInput) -> Budget:
        self._raise_on_errors(self._validator.validate_budget(data))
        budget = Budget(category=data.category.strip(), amount=data.amount)
        if any(b.category == budget.category for b in self._state.budgets):
            self._state.budgets = [budget if b.category == budget.category else b for b in self._state.budgets]
        else:
            self._state.budgets = [*self._state.budgets, budget]
        self._repository.save_budgets(self._state.budgets)
        logger.info("Budget saved category=%s amount=%s", budget.category, budget.amount)
        return budget

    def delete_budget(self, category: str) -> bool:
        before = len(self._state.budgets)
        self._state.budgets = [b for b in self._state.budgets if b.category != category]
        self._repository.save_budgets(self._state.budgets)
        return len(self._state.budgets) != before

    # ---- preferences ----
    def set_currency(self, code: str) -> str:
        currency = find_currency(code)
        if currency is None:
            raise UnsupportedCurrencyError(f"Unsupported currency code: {code!r}")
        self._state.selected_currency = currency.code
        self._repository.save_currency(currency.code)
        return currency.code

    def set_alert_threshold(self, threshold: int) -> int:
        value = validate_threshold(threshold)
        self._state.budget_alert_threshold = value
        self._repository.save_threshold(value)
        return value

    # ---- helpers ----
    def record_category_choice(self, description: str, chosen: str, suggested: str | None, confirmed: bool) -> None:
        overrides = record_override(self._state.category_overrides, description, chosen, suggested, confirmed)
        if overrides is not self._state.category_overrides:
            self._state.category_overrides = overrides
            self._repository.save_overrides(overrides)

    def _raise_on_errors(self, issues) -> None:
        errors = blocking(issues)
        if errors:
            logger.info("Input rejected issues=%s", [issue.code for issue in errors])
            raise InvalidInputError(errors)

    def _build_transaction(self, tx_id: str, data: TransactionInput) -> Transaction:
        return Transaction(
            id=tx_id,
            description=data.description.strip(),
            amount=data.amount,
            type=data.type,
            date=data.date,
            category=data.category,
            notes=_clean_notes(data.notes),
            currency_code=data.currency_code,
        )

    def _build_rule(self, rule_id: str, data: RecurringTransactionInput, next_occurrence) -> RecurringTransaction:
        return RecurringTransaction(
            id=rule_id,
            description=data.description.strip(),
            amount=data.amount,
            type=data.type,
            category=data.category,
            frequency=data.frequency,
            start_date=data.start_date,
            next_occurrence_date=next_occurrence,
            notes=_clean_notes(data.notes),
            currency_code=data.currency_code,
        )

    @staticmethod
    def _matches(tx: Transaction, query: TransactionFilter) -> bool:
        if query.type != "all" and tx.type != TransactionType(query.type):
            return False
        if query.currency != "ALL" and tx.currency_code != query.currency:
            return False
        if query.start and tx.date < query.start:
            return False
        if query.end and tx.date > query.end:
            return False
        if query.ids and tx.id not in query.ids:
            return False
        return True
