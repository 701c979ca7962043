from __future__ import annotations

import unittest
from datetime import date, datetime
from decimal import Decimal

from application.recurrence import add_months, materialize, merge_transactions, step
from domain.models import Frequency, TransactionType
from domain.schemas import RecurringTransaction, Transaction


def _rule(**overrides) -> RecurringTransaction:
    data = {
        "id": "rent",
        "description": "Rent",
        "amount": Decimal("50"),
        "type": TransactionType.EXPENSE,
        "category": "Housing",
        "frequency": "monthly",
        "start_date": date(2024, 1, 1),
        "next_occurrence_date": date(2024, 1, 1),
        "currency_code": "USD",
    }
    data.update(overrides)
    return RecurringTransaction(**data)


class MaterializeTests(unittest.TestCase):
    def test_monthly_rule_backfills_missed_occurrences(self) -> None:
        result = materialize([_rule()], [], date(2024, 3, 15))

        self.assertEqual(
            [tx.date for tx in result.new_transactions],
            [date(2024, 1, 1), date(2024, 2, 1), date(2024, 3, 1)],
        )
        self.assertEqual(
            [tx.id for tx in result.new_transactions],
            ["rent-2024-01-01", "rent-2024-02-01", "rent-2024-03-01"],
        )
        self.assertTrue(all(tx.amount == Decimal("50") for tx in result.new_transactions))
        self.assertTrue(all(tx.currency_code == "USD" for tx in result.new_transactions))
        self.assertTrue(result.changed)
        self.assertEqual(result.updated_rules[0].next_occurrence_date, date(2024, 4, 1))

    def test_second_pass_is_idempotent(self) -> None:
        rules = [_rule()]
        today = date(2024, 3, 15)
        first = materialize(rules, [], today)

        # Same (unadvanced) rules against the materialized transactions.
        replay = materialize(rules, first.new_transactions, today)
        self.assertEqual(replay.new_transactions, [])

        # Advanced rules: nothing is due any more.
        settled = materialize(first.updated_rules, first.new_transactions, today)
        self.assertEqual(settled.new_transactions, [])
        self.assertFalse(settled.changed)

    def test_rule_not_yet_due_is_left_alone(self) -> None:
        rule = _rule(next_occurrence_date=date(2024, 4, 1))
        result = materialize([rule], [], date(2024, 3, 15))

        self.assertEqual(result.new_transactions, [])
        self.assertFalse(result.changed)
        self.assertIs(result.updated_rules[0], rule)

    def test_weekly_count_matches_elapsed_periods(self) -> None:
        rule = _rule(frequency="weekly", next_occurrence_date=date(2024, 1, 1))
        today = date(2024, 1, 30)
        result = materialize([rule], [], today)

        expected = (today - date(2024, 1, 1)).days // 7 + 1
        self.assertEqual(len(result.new_transactions), expected)
        self.assertEqual(len({tx.id for tx in result.new_transactions}), expected)
        self.assertGreater(result.updated_rules[0].next_occurrence_date, today)

    def test_daily_count_matches_elapsed_days(self) -> None:
        start = date(2024, 2, 20)
        today = date(2024, 3, 15)
        result = materialize([_rule(frequency="daily", next_occurrence_date=start)], [], today)

        self.assertEqual(len(result.new_transactions), (today - start).days + 1)
        self.assertEqual(result.new_transactions[9].date, date(2024, 2, 29))
        self.assertEqual(result.updated_rules[0].next_occurrence_date, date(2024, 3, 16))

    def test_yearly_rule_from_leap_day(self) -> None:
        rule = _rule(frequency="yearly", start_date=date(2020, 2, 29), next_occurrence_date=date(2020, 2, 29))
        result = materialize([rule], [], date(2024, 3, 15))

        # Four whole years elapsed, so 4 + 1 occurrences; 2021-02-29 rolls into March.
        self.assertEqual(
            [tx.date for tx in result.new_transactions],
            [date(2020, 2, 29), date(2021, 3, 1), date(2022, 3, 1), date(2023, 3, 1), date(2024, 3, 1)],
        )
        self.assertEqual(result.updated_rules[0].next_occurrence_date, date(2025, 3, 1))

    def test_occurrence_on_today_is_included(self) -> None:
        rule = _rule(frequency="daily", next_occurrence_date=date(2024, 5, 10))
        result = materialize([rule], [], datetime(2024, 5, 10, 18, 30))

        self.assertEqual([tx.id for tx in result.new_transactions], ["rent-2024-05-10"])
        self.assertEqual(result.updated_rules[0].next_occurrence_date, date(2024, 5, 11))

    def test_unknown_frequency_steps_daily_and_warns(self) -> None:
        rule = _rule(frequency="fortnightly", next_occurrence_date=date(2024, 1, 1))

        with self.assertLogs("application.recurrence", level="WARNING") as logs:
            result = materialize([rule], [], date(2024, 1, 3))

        self.assertEqual(len(result.new_transactions), 3)
        self.assertEqual(result.updated_rules[0].next_occurrence_date, date(2024, 1, 4))
        self.assertIn("fortnightly", "\n".join(logs.output))

    def test_existing_occurrence_ids_are_skipped(self) -> None:
        existing = [
            Transaction(
                id="rent-2024-02-01",
                description="Rent (edited)",
                amount=Decimal("55"),
                type=TransactionType.EXPENSE,
                date=date(2024, 2, 1),
                category="Housing",
            )
        ]
        result = materialize([_rule()], existing, date(2024, 3, 15))

        self.assertEqual([tx.id for tx in result.new_transactions], ["rent-2024-01-01", "rent-2024-03-01"])


class StepTests(unittest.TestCase):
    def test_month_end_overflows_into_next_month(self) -> None:
        self.assertEqual(add_months(date(2024, 1, 31), 1), date(2024, 3, 2))
        self.assertEqual(add_months(date(2023, 1, 31), 1), date(2023, 3, 3))

    def test_leap_day_yearly_step(self) -> None:
        self.assertEqual(step(date(2024, 2, 29), Frequency.YEARLY), date(2025, 3, 1))

    def test_month_step_crosses_year(self) -> None:
        self.assertEqual(step(date(2024, 12, 15), Frequency.MONTHLY), date(2025, 1, 15))

    def test_weekly_and_daily_steps(self) -> None:
        self.assertEqual(step(date(2024, 2, 26), Frequency.WEEKLY), date(2024, 3, 4))
        self.assertEqual(step(date(2024, 2, 28), Frequency.DAILY), date(2024, 2, 29))


class MergeTransactionsTests(unittest.TestCase):
    def test_merge_skips_known_ids_and_orders_by_date_then_id(self) -> None:
        def tx(tx_id: str, day: int) -> Transaction:
            return Transaction(
                id=tx_id,
                description="Coffee",
                amount=Decimal("3"),
                type=TransactionType.EXPENSE,
                date=date(2024, 1, day),
                category="Food",
            )

        merged = merge_transactions([tx("b", 2), tx("z", 1)], [tx("a", 2), tx("b", 2)])

        self.assertEqual([t.id for t in merged], ["z", "a", "b"])


if __name__ == "__main__":
    unittest.main()
