from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable

from domain.catalog import (
    BUDGET_ALERT_THRESHOLD_STEP,
    MAX_BUDGET_ALERT_THRESHOLD,
    MIN_BUDGET_ALERT_THRESHOLD,
)
from domain.models import BudgetAlert, CategoryTotal, Period, SummaryData, TransactionType
from domain.schemas import Budget, Transaction

logger = logging.getLogger(__name__)


def start_of_week(today: date) -> date:
    # Weeks start on Sunday; date.weekday() has Monday == 0.
    return today - timedelta(days=(today.weekday() + 1) % 7)


def filter_period(transactions: Iterable[Transaction], period: Period | str, today: date | None = None) -> list[Transaction]:
    today = today or date.today()
    period = Period(period)
    if period == Period.DAILY:
        return [tx for tx in transactions if tx.date == today]
    if period == Period.WEEKLY:
        start = start_of_week(today)
    else:
        start = today.replace(day=1)
    return [tx for tx in transactions if tx.date >= start]


def summarize(
    transactions: Iterable[Transaction],
    currency_code: str,
    period: Period | str | None = None,
    today: date | None = None,
) -> SummaryData:
    """
    Totals and per-category breakdown for transactions in `currency_code`.

    Category buckets add every amount regardless of type, so a category used
    for both income and expense holds the combined sum. Breakdown order is the
    order in which categories first appear.
    """
    if period is not None:
        transactions = filter_period(transactions, period, today)

    total_income = Decimal("0")
    total_expense = Decimal("0")
    buckets: dict[str, Decimal] = {}

    for tx in transactions:
        if tx.currency_code != currency_code:
            continue
        if tx.type == TransactionType.INCOME:
            total_income += tx.amount
        else:
            total_expense += tx.amount
        buckets[tx.category] = buckets.get(tx.category, Decimal("0")) + tx.amount

    return SummaryData(
        total_income=total_income,
        total_expense=total_expense,
        net_savings=total_income - total_expense,
        category_breakdown=[CategoryTotal(category=cat, amount=amount) for cat, amount in buckets.items()],
    )


def expense_breakdown(transactions: Iterable[Transaction], currency_code: str) -> list[CategoryTotal]:
    """Expense-only totals per category; categories without expense are omitted."""
    buckets: dict[str, Decimal] = {}
    for tx in transactions:
        if tx.currency_code != currency_code or tx.type != TransactionType.EXPENSE:
            continue
        buckets[tx.category] = buckets.get(tx.category, Decimal("0")) + tx.amount
    return [CategoryTotal(category=cat, amount=amount) for cat, amount in buckets.items() if amount > 0]


def validate_threshold(threshold_percent: int) -> int:
    value = int(threshold_percent)
    if not MIN_BUDGET_ALERT_THRESHOLD <= value <= MAX_BUDGET_ALERT_THRESHOLD:
        raise ValueError(
            f"Budget alert threshold must be between {MIN_BUDGET_ALERT_THRESHOLD} and {MAX_BUDGET_ALERT_THRESHOLD}"
        )
    if value % BUDGET_ALERT_THRESHOLD_STEP:
        raise ValueError(f"Budget alert threshold must be a multiple of {BUDGET_ALERT_THRESHOLD_STEP}")
    return value


def budget_alerts(summary: SummaryData, budgets: Iterable[Budget], threshold_percent: int) -> list[BudgetAlert]:
    threshold = validate_threshold(threshold_percent)
    alerts: list[BudgetAlert] = []
    for budget in budgets:
        if budget.amount <= 0:
            continue
        spent = summary.category_amount(budget.category)
        percentage = float(spent / budget.amount * 100)
        if percentage >= threshold:
            alerts.append(BudgetAlert(category=budget.category, spent=spent, budget=budget.amount, percentage=percentage))

    if alerts:
        logger.info("Budget alerts raised count=%d threshold=%d", len(alerts), threshold)
    return alerts
