from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Iterator

from application.ledger import LedgerService
from application.recurrence import materialize, merge_transactions
from application.summary import budget_alerts, expense_breakdown, filter_period, summarize
from domain.catalog import DEFAULT_BUDGET_ALERT_THRESHOLD
from domain.models import BudgetAlert, CategoryTotal, Period, SummaryData
from domain.state import AppState
from infrastructure.persistence.state_repository import StateRepository

logger = logging.getLogger(__name__)


@dataclass
class Dashboard:
    period: Period
    currency_code: str
    summary: SummaryData
    alerts: list[BudgetAlert] = field(default_factory=list)
    expense_breakdown: list[CategoryTotal] = field(default_factory=list)
    threshold: int = DEFAULT_BUDGET_ALERT_THRESHOLD


class LedgerEngine:
    """One load/update cycle: reconcile recurring rules, then evaluate the dashboard."""

    def __init__(
        self,
        repository: StateRepository,
        clock: Callable[[], date] = date.today,
        state: AppState | None = None,
    ):
        self._repository = repository
        self._clock = clock
        self._state = state if state is not None else repository.load()
        self._ledger = LedgerService(self._state, repository)
        # Single writer: callers that may run on several threads go through session().
        self._lock = threading.RLock()

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def ledger(self) -> LedgerService:
        return self._ledger

    def today(self) -> date:
        return self._clock()

    @contextmanager
    def session(self) -> Iterator["LedgerEngine"]:
        """
        Hold the engine lock for one reconcile-then-act cycle. Reads and
        mutations done inside the block see a consistent state and reach the
        store in order.
        """
        with self._lock:
            self.reconcile()
            yield self

    def reconcile(self) -> int:
        """Materialize due recurring occurrences; returns how many transactions were added."""
        t = time.perf_counter()
        with self._lock:
            result = materialize(self._state.recurring_transactions, self._state.transactions, self.today())

            if result.new_transactions:
                self._state.transactions = merge_transactions(self._state.transactions, result.new_transactions)
                self._repository.save_transactions(self._state.transactions)
            if result.changed:
                self._state.recurring_transactions = result.updated_rules
                self._repository.save_recurring(self._state.recurring_transactions)

        logger.info(
            "Reconcile complete in %.2fs new_transactions=%d rules_advanced=%s",
            time.perf_counter() - t,
            len(result.new_transactions),
            result.changed,
        )
        return len(result.new_transactions)

    def dashboard(self, period: Period | str = Period.MONTHLY, currency_code: str | None = None) -> Dashboard:
        t = time.perf_counter()
        period = Period(period)
        currency = (currency_code or self._state.selected_currency).upper()
        in_period = filter_period(self._state.transactions, period, self.today())
        summary = summarize(in_period, currency)
        alerts = budget_alerts(summary, self._state.budgets, self._state.budget_alert_threshold)
        board = Dashboard(
            period=period,
            currency_code=currency,
            summary=summary,
            alerts=alerts,
            expense_breakdown=expense_breakdown(in_period, currency),
            threshold=self._state.budget_alert_threshold,
        )
        logger.info(
            "Dashboard complete in %.2fs period=%s currency=%s transactions=%d alerts=%d",
            time.perf_counter() - t,
            period.value,
            currency,
            len(in_period),
            len(alerts),
        )
        return board
