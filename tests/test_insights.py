from __future__ import annotations

import unittest
from decimal import Decimal

from application.insights import InsightService
from domain.models import CategoryTotal, SummaryData
from domain.schemas import Budget
from llm.insights_llm import FALLBACK_INSIGHTS, InsightsLLM


class _StubLLMClient:
    def __init__(self, response: str):
        self.response = response
        self.prompts: list[str] = []

    def complete(self, prompt: str, json_mode: bool = False) -> str:
        self.prompts.append(prompt)
        return self.response


class _BrokenGenerator:
    def generate(self, summary, budgets, currency_code) -> str:
        raise ConnectionError("offline")


def _summary() -> SummaryData:
    return SummaryData(
        total_income=Decimal("2500"),
        total_expense=Decimal("640.5"),
        net_savings=Decimal("1859.5"),
        category_breakdown=[CategoryTotal("Salary", Decimal("2500")), CategoryTotal("Food", Decimal("640.5"))],
    )


class InsightsLLMTests(unittest.TestCase):
    def test_prompt_carries_totals_breakdown_and_budgets(self) -> None:
        client = _StubLLMClient("Cook at home more often.")
        llm = InsightsLLM(client)

        text = llm.generate(_summary(), [Budget(category="Food", amount=Decimal("600"))], "EUR")

        self.assertEqual(text, "Cook at home more often.")
        prompt = client.prompts[0]
        self.assertIn("Total Income: EUR 2500.00", prompt)
        self.assertIn("Total Expenses: EUR 640.50", prompt)
        self.assertIn("Net Savings: EUR 1859.50", prompt)
        self.assertIn("Food: EUR 640.50", prompt)
        self.assertIn("Food: EUR 600.00", prompt)

    def test_prompt_without_budgets_or_spending(self) -> None:
        prompt = InsightsLLM(_StubLLMClient("")).build_prompt(SummaryData(), [], "USD")

        self.assertIn("No budgets set.", prompt)
        self.assertIn("No spending recorded.", prompt)

    def test_empty_reply_returns_fallback_message(self) -> None:
        self.assertEqual(InsightsLLM(_StubLLMClient("   ")).generate(_summary(), [], "USD"), FALLBACK_INSIGHTS)


class InsightServiceTests(unittest.TestCase):
    def test_generator_failure_returns_fallback(self) -> None:
        service = InsightService(_BrokenGenerator())

        with self.assertLogs("application.insights", level="ERROR"):
            result = service.request(_summary(), [], "USD")

        self.assertEqual(result.text, FALLBACK_INSIGHTS)

    def test_older_reply_is_not_current(self) -> None:
        service = InsightService(InsightsLLM(_StubLLMClient("Save more.")))

        first = service.request(_summary(), [], "USD")
        second = service.request(_summary(), [], "USD")

        self.assertGreater(second.sequence, first.sequence)
        self.assertFalse(service.is_current(first))
        self.assertTrue(service.is_current(second))


if __name__ == "__main__":
    unittest.main()
