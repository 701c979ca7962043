from __future__ import annotations

import logging
from calendar import monthrange
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable

from domain.models import Frequency
from domain.schemas import RecurringTransaction, Transaction

logger = logging.getLogger(__name__)


@dataclass
class MaterializationResult:
    new_transactions: list[Transaction] = field(default_factory=list)
    updated_rules: list[RecurringTransaction] = field(default_factory=list)
    # True when at least one rule was due and had its next occurrence advanced.
    changed: bool = False


def _as_day(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def add_months(base: date, months: int) -> date:
    """
    Calendar-month step with date-object overflow: a day-of-month missing from
    the target month rolls into the month after (2024-01-31 + 1 -> 2024-03-02).
    """
    total_months = base.month - 1 + months
    year = base.year + total_months // 12
    month = total_months % 12 + 1
    dim = monthrange(year, month)[1]
    if base.day <= dim:
        return date(year, month, base.day)
    return date(year, month, dim) + timedelta(days=base.day - dim)


def resolve_frequency(rule: RecurringTransaction) -> Frequency:
    try:
        return Frequency(rule.frequency)
    except ValueError:
        logger.warning(
            "Recurring rule id=%s has unknown frequency=%r; stepping daily",
            rule.id,
            rule.frequency,
        )
        return Frequency.DAILY


def step(occurrence: date, frequency: Frequency) -> date:
    if frequency == Frequency.WEEKLY:
        return occurrence + timedelta(days=7)
    if frequency == Frequency.MONTHLY:
        return add_months(occurrence, 1)
    if frequency == Frequency.YEARLY:
        return add_months(occurrence, 12)
    return occurrence + timedelta(days=1)


def occurrence_id(rule: RecurringTransaction, occurrence: date) -> str:
    return f"{rule.id}-{occurrence.isoformat()}"


def _occurrence_transaction(rule: RecurringTransaction, occurrence: date) -> Transaction:
    return Transaction(
        id=occurrence_id(rule, occurrence),
        description=rule.description,
        amount=rule.amount,
        type=rule.type,
        date=occurrence,
        category=rule.category,
        notes=rule.notes,
        currency_code=rule.currency_code,
    )


def materialize(
    rules: Iterable[RecurringTransaction],
    existing: Iterable[Transaction],
    today: date | datetime,
) -> MaterializationResult:
    """
    Generate every missing occurrence up to and including `today` and advance
    each due rule's next occurrence past `today`.

    Occurrence ids are `{rule_id}-{YYYY-MM-DD}`; an id already present in
    `existing` (or generated earlier in this pass) is skipped, which makes the
    pass idempotent.
    """
    today = _as_day(today)
    known_ids = {tx.id for tx in existing}
    result = MaterializationResult()

    for rule in rules:
        occurrence = rule.next_occurrence_date
        if occurrence > today:
            result.updated_rules.append(rule)
            continue

        result.changed = True
        frequency = resolve_frequency(rule)
        generated = 0
        while occurrence <= today:
            tx_id = occurrence_id(rule, occurrence)
            if tx_id not in known_ids:
                known_ids.add(tx_id)
                result.new_transactions.append(_occurrence_transaction(rule, occurrence))
                generated += 1
            occurrence = step(occurrence, frequency)

        logger.info(
            "Recurring rule id=%s materialized=%d next_occurrence=%s",
            rule.id,
            generated,
            occurrence.isoformat(),
        )
        result.updated_rules.append(rule.model_copy(update={"next_occurrence_date": occurrence}))

    return result


def merge_transactions(existing: Iterable[Transaction], new: Iterable[Transaction]) -> list[Transaction]:
    """Append transactions with unseen ids; result is ordered by (date, id)."""
    merged = list(existing)
    seen = {tx.id for tx in merged}
    for tx in new:
        if tx.id in seen:
            continue
        seen.add(tx.id)
        merged.append(tx)
    return sorted(merged, key=lambda tx: (tx.date, tx.id))
