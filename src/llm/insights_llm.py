from __future__ import annotations

import logging
from decimal import Decimal
from typing import List

from domain.models import SummaryData
from domain.schemas import Budget
from llm.categorizer_llm import CompletionClient

logger = logging.getLogger(__name__)

FALLBACK_INSIGHTS = "Could not retrieve spending insights at this time. Please try again later."

_PROMPT_TEMPLATE = """You are Smart Expense, an intelligent personal finance assistant.
Analyze the following financial summary and provide helpful insights and suggestions to save money.
Respond in a friendly, helpful tone.

Summary:
Total Income: {currency} {income}
Total Expenses: {currency} {expense}
Net Savings: {currency} {net}

Spending Breakdown by Category:
{breakdown}

Budgets:
{budgets}

Based on this, what are the key spending patterns? Suggest actionable ways to save money, \
particularly highlighting areas where spending is high or near budget limits."""


def _money(value: Decimal) -> str:
    return f"{value:.2f}"


class InsightsLLM:
    """Free-text spending advice from a summary and the budget set."""

    def __init__(self, llm_client: CompletionClient, fallback: str = FALLBACK_INSIGHTS):
        self._llm = llm_client
        self._fallback = fallback

    def build_prompt(self, summary: SummaryData, budgets: List[Budget], currency_code: str) -> str:
        breakdown = ", ".join(
            f"{cb.category}: {currency_code} {_money(cb.amount)}" for cb in summary.category_breakdown
        )
        budget_info = ", ".join(f"{b.category}: {currency_code} {_money(b.amount)}" for b in budgets)
        return _PROMPT_TEMPLATE.format(
            currency=currency_code,
            income=_money(summary.total_income),
            expense=_money(summary.total_expense),
            net=_money(summary.net_savings),
            breakdown=breakdown or "No spending recorded.",
            budgets=budget_info or "No budgets set.",
        )

    def generate(self, summary: SummaryData, budgets: List[Budget], currency_code: str) -> str:
        logger.info(
            "InsightsLLM generate start currency=%s categories=%d budgets=%d",
            currency_code,
            len(summary.category_breakdown),
            len(budgets),
        )
        raw = self._llm.complete(self.build_prompt(summary, budgets, currency_code)).strip()
        if not raw:
            logger.info("InsightsLLM empty response; using fallback message")
            return self._fallback
        return raw
