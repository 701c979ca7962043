from __future__ import annotations

from decimal import Decimal

from domain.models import Currency

FALLBACK_CATEGORY = "Others"

DEFAULT_CATEGORIES: list[str] = [
    "Food",
    "Transport",
    "Housing",
    "Utilities",
    "Entertainment",
    "Health",
    "Shopping",
    "Education",
    "Salary",
    "Investments",
    "Gifts",
    "Travel",
    FALLBACK_CATEGORY,
]

DEFAULT_CURRENCY_CODE = "USD"

CURRENCY_OPTIONS: list[Currency] = [
    Currency(code="USD", name="US Dollar", symbol="$"),
    Currency(code="EUR", name="Euro", symbol="€"),
    Currency(code="GBP", name="British Pound", symbol="£"),
    Currency(code="JPY", name="Japanese Yen", symbol="¥"),
    Currency(code="INR", name="Indian Rupee", symbol="₹"),
    Currency(code="CAD", name="Canadian Dollar", symbol="CA$"),
    Currency(code="AUD", name="Australian Dollar", symbol="A$"),
    Currency(code="CHF", name="Swiss Franc", symbol="CHF"),
    Currency(code="CNY", name="Chinese Yuan", symbol="CN¥"),
    Currency(code="BRL", name="Brazilian Real", symbol="R$"),
]

# Units of each currency per 1 USD. Static; refreshed by hand.
EXCHANGE_RATES: dict[str, Decimal] = {
    "USD": Decimal("1"),
    "EUR": Decimal("0.92"),
    "GBP": Decimal("0.79"),
    "JPY": Decimal("151.50"),
    "INR": Decimal("83.30"),
    "CAD": Decimal("1.36"),
    "AUD": Decimal("1.52"),
    "CHF": Decimal("0.90"),
    "CNY": Decimal("7.23"),
    "BRL": Decimal("5.05"),
}

DEFAULT_BUDGET_ALERT_THRESHOLD = 75
MIN_BUDGET_ALERT_THRESHOLD = 10
MAX_BUDGET_ALERT_THRESHOLD = 100
BUDGET_ALERT_THRESHOLD_STEP = 5


def find_currency(code: str) -> Currency | None:
    code = (code or "").upper()
    for currency in CURRENCY_OPTIONS:
        if currency.code == code:
            return currency
    return None


def search_currencies(term: str) -> list[Currency]:
    """Case-insensitive match on currency name or code; empty term returns all."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(CURRENCY_OPTIONS)
    return [c for c in CURRENCY_OPTIONS if needle in c.name.lower() or needle in c.code.lower()]
