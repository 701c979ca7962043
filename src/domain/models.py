from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class Period(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class Currency:
    code: str
    name: str
    symbol: str


@dataclass
class CategoryTotal:
    category: str
    amount: Decimal


@dataclass
class SummaryData:
    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    net_savings: Decimal = Decimal("0")
    category_breakdown: list[CategoryTotal] = field(default_factory=list)

    def category_amount(self, category: str) -> Decimal:
        return sum((cb.amount for cb in self.category_breakdown if cb.category == category), Decimal("0"))


@dataclass(frozen=True)
class BudgetAlert:
    category: str
    spent: Decimal
    budget: Decimal
    percentage: float
