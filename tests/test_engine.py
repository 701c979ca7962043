from __future__ import annotations

import json
import tempfile
import threading
import unittest
from datetime import date
from decimal import Decimal
from pathlib import Path

from application.engine import LedgerEngine
from application.validator import InvalidInputError
from domain.models import Period, TransactionType
from domain.schemas import BudgetInput, RecurringTransactionInput, TransactionFilter, TransactionInput
from infrastructure.currency.rates import UnsupportedCurrencyError
from infrastructure.persistence.state_repository import (
    OVERRIDES_KEY,
    RECURRING_KEY,
    TRANSACTIONS_KEY,
    StateRepository,
)
from infrastructure.persistence.store import InMemoryStore, JsonFileStore


class _Clock:
    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today


class LedgerEngineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryStore()
        self.clock = _Clock(date(2024, 3, 15))
        self.engine = LedgerEngine(StateRepository(self.store), clock=self.clock)

    def _add(self, description: str, amount: str, **fields) -> None:
        data = {"description": description, "amount": amount, "date": "2024-03-10", "category": "Food"}
        data.update(fields)
        self.engine.ledger.add_transaction(TransactionInput(**data))

    def test_invalid_transaction_never_reaches_the_store(self) -> None:
        with self.assertRaises(InvalidInputError) as ctx:
            self.engine.ledger.add_transaction(TransactionInput(description="  ", amount="-3", date=None))

        codes = {issue.code for issue in ctx.exception.issues}
        self.assertEqual(codes, {"MISSING_DESCRIPTION", "INVALID_AMOUNT", "MISSING_DATE"})
        self.assertEqual(self.engine.state.transactions, [])
        self.assertIsNone(self.store.get(TRANSACTIONS_KEY))

    def test_non_default_category_is_only_a_warning(self) -> None:
        self._add("Pottery class", "30", category="Hobbies")
        self.assertEqual(self.engine.state.transactions[0].category, "Hobbies")

    def test_add_transaction_writes_through(self) -> None:
        self._add("Groceries", "42.10", notes="  ")

        stored = json.loads(self.store.get(TRANSACTIONS_KEY))
        self.assertEqual(len(stored), 1)
        self.assertEqual(stored[0]["amount"], "42.10")
        self.assertNotIn("notes", stored[0])

    def test_update_replaces_and_unknown_id_raises(self) -> None:
        self._add("Groceries", "42.10")
        tx_id = self.engine.state.transactions[0].id

        self.engine.ledger.update_transaction(
            tx_id, TransactionInput(description="Groceries", amount="50", date="2024-03-11", category="Food")
        )
        self.assertEqual(self.engine.ledger.get_transaction(tx_id).amount, Decimal("50"))

        with self.assertRaises(KeyError):
            self.engine.ledger.update_transaction(
                "missing", TransactionInput(description="X item", amount="1", date="2024-03-11")
            )

    def test_delete_single_and_many(self) -> None:
        for name in ("Coffee", "Tea", "Juice"):
            self._add(name, "3")
        ids = [tx.id for tx in self.engine.state.transactions]

        self.assertEqual(self.engine.ledger.delete_transactions(ids[0]), 1)
        self.assertEqual(self.engine.ledger.delete_transactions([ids[1], ids[2], "nope"]), 2)
        self.assertEqual(json.loads(self.store.get(TRANSACTIONS_KEY)), [])

    def test_list_filters_and_sorts(self) -> None:
        self._add("Old", "1", date="2024-01-05")
        self._add("Mid", "2", date="2024-02-05", type=TransactionType.INCOME, category="Salary")
        self._add("New", "3", date="2024-03-05", currency_code="EUR")

        desc = self.engine.ledger.list_transactions()
        self.assertEqual([tx.description for tx in desc], ["New", "Mid", "Old"])

        asc = self.engine.ledger.list_transactions(TransactionFilter(sort_order="asc"))
        self.assertEqual([tx.description for tx in asc], ["Old", "Mid", "New"])

        expenses = self.engine.ledger.list_transactions(TransactionFilter(type="expense", currency="usd"))
        self.assertEqual([tx.description for tx in expenses], ["Old"])

        window = self.engine.ledger.list_transactions(TransactionFilter(start="2024-02-01", end="2024-02-29"))
        self.assertEqual([tx.description for tx in window], ["Mid"])

    def test_list_restricted_to_selected_ids(self) -> None:
        for name in ("Coffee", "Tea", "Juice"):
            self._add(name, "3")
        by_name = {tx.description: tx.id for tx in self.engine.state.transactions}

        picked = self.engine.ledger.list_transactions(
            TransactionFilter(ids=[by_name["Tea"], by_name["Juice"], "gone"], sort_order="asc")
        )
        self.assertEqual(sorted(tx.description for tx in picked), ["Juice", "Tea"])

        # A selection still honours the other filters.
        none = self.engine.ledger.list_transactions(TransactionFilter(ids=[by_name["Tea"]], type="income"))
        self.assertEqual(none, [])

    def test_filter_rejects_inverted_range(self) -> None:
        with self.assertRaises(ValueError):
            TransactionFilter(start="2024-03-01", end="2024-02-01")

    def test_recurring_rule_materializes_on_reconcile(self) -> None:
        self.engine.ledger.add_recurring(
            RecurringTransactionInput(
                description="Gym",
                amount="50",
                category="Health",
                frequency="monthly",
                start_date="2024-01-01",
            )
        )

        self.assertEqual(self.engine.reconcile(), 3)
        self.assertEqual(self.engine.reconcile(), 0)

        stored_rules = json.loads(self.store.get(RECURRING_KEY))
        self.assertEqual(stored_rules[0]["nextOccurrenceDate"], "2024-04-01")
        self.assertEqual(len(json.loads(self.store.get(TRANSACTIONS_KEY))), 3)

        # A fresh engine over the same store sees the persisted result.
        reloaded = LedgerEngine(StateRepository(self.store), clock=self.clock)
        self.assertEqual(reloaded.reconcile(), 0)
        self.assertEqual(len(reloaded.state.transactions), 3)

        self.clock.today = date(2024, 4, 1)
        self.assertEqual(reloaded.reconcile(), 1)

    def test_unknown_frequency_rule_is_rejected(self) -> None:
        with self.assertRaises(InvalidInputError) as ctx:
            self.engine.ledger.add_recurring(
                RecurringTransactionInput(description="Gym", amount="50", frequency="hourly", start_date="2024-01-01")
            )
        self.assertEqual([issue.code for issue in ctx.exception.issues], ["UNKNOWN_FREQUENCY"])

    def test_update_recurring_keeps_next_occurrence(self) -> None:
        rule = self.engine.ledger.add_recurring(
            RecurringTransactionInput(description="Gym", amount="50", frequency="monthly", start_date="2024-01-01")
        )
        self.engine.reconcile()

        updated = self.engine.ledger.update_recurring(
            rule.id,
            RecurringTransactionInput(description="Gym plus", amount="60", frequency="monthly", start_date="2024-01-01"),
        )
        self.assertEqual(updated.next_occurrence_date, date(2024, 4, 1))
        self.assertEqual(self.engine.reconcile(), 0)

    def test_budget_upsert_and_dashboard_alerts(self) -> None:
        self.engine.ledger.save_budget(BudgetInput(category="Food", amount="100"))
        self.engine.ledger.save_budget(BudgetInput(category="Food", amount="50"))
        self.assertEqual(len(self.engine.state.budgets), 1)

        self._add("Dinner", "45")
        self._add("Bonus", "500", type=TransactionType.INCOME, category="Salary")
        board = self.engine.dashboard(Period.MONTHLY)

        self.assertEqual(board.summary.total_expense, Decimal("45"))
        self.assertEqual(board.summary.net_savings, Decimal("455"))
        self.assertEqual([a.category for a in board.alerts], ["Food"])
        self.assertAlmostEqual(board.alerts[0].percentage, 90.0)
        self.assertEqual([cb.category for cb in board.expense_breakdown], ["Food"])

    def test_invalid_budget_is_rejected(self) -> None:
        with self.assertRaises(InvalidInputError):
            self.engine.ledger.save_budget(BudgetInput(category="Food", amount="0"))
        self.assertEqual(self.engine.state.budgets, [])

    def test_settings_are_validated(self) -> None:
        self.assertEqual(self.engine.ledger.set_currency("eur"), "EUR")
        self.assertEqual(self.engine.dashboard().currency_code, "EUR")
        with self.assertRaises(UnsupportedCurrencyError):
            self.engine.ledger.set_currency("XYZ")

        self.assertEqual(self.engine.ledger.set_alert_threshold(90), 90)
        with self.assertRaises(ValueError):
            self.engine.ledger.set_alert_threshold(93)
        self.assertEqual(self.engine.state.budget_alert_threshold, 90)

    def test_confirmed_category_change_becomes_override(self) -> None:
        self._add("Spotify", "10", category="Entertainment", ai_suggested_category="Shopping", override_confirmed=True)

        stored = json.loads(self.store.get(OVERRIDES_KEY))
        self.assertEqual(stored, [{"description": "Spotify", "category": "Entertainment"}])


class LedgerEngineConcurrencyTests(unittest.TestCase):
    def test_threaded_sessions_keep_disk_and_memory_in_step(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            repository = StateRepository(JsonFileStore(Path(tmp) / "store.json"))
            engine = LedgerEngine(repository, clock=lambda: date(2024, 3, 15))
            errors: list[Exception] = []

            def add_transactions(worker: int) -> None:
                try:
                    for n in range(25):
                        with engine.session() as active:
                            active.ledger.add_transaction(
                                TransactionInput(description=f"Item {worker}-{n}", amount="1", date="2024-03-10")
                            )
                except Exception as exc:  # surfaced by the assertion below
                    errors.append(exc)

            def add_budgets() -> None:
                try:
                    for n in range(25):
                        with engine.session() as active:
                            active.ledger.save_budget(BudgetInput(category=f"Cat {n}", amount="10"))
                except Exception as exc:
                    errors.append(exc)

            threads = [threading.Thread(target=add_transactions, args=(w,)) for w in range(3)]
            threads.append(threading.Thread(target=add_budgets))
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

            self.assertEqual(errors, [])
            self.assertEqual(len(engine.state.transactions), 75)
            self.assertEqual(len(engine.state.budgets), 25)

            reloaded = repository.load()
            self.assertEqual(len(reloaded.transactions), 75)
            self.assertEqual(len(reloaded.budgets), 25)


if __name__ == "__main__":
    unittest.main()
