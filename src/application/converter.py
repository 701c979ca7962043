from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from domain.catalog import find_currency
from infrastructure.currency.rates import ExchangeRateTable

logger = logging.getLogger(__name__)


def format_currency(amount: Decimal | float | int, currency_code: str) -> str:
    value = Decimal(str(amount))
    currency = find_currency(currency_code)
    symbol = currency.symbol if currency else currency_code.upper()
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


class CurrencyConverter:
    def __init__(self, rates: ExchangeRateTable | None = None):
        self._rates = rates or ExchangeRateTable()

    def convert(self, amount: Decimal | float | int | str, from_currency: str, to_currency: str) -> Decimal:
        try:
            value = Decimal(str(amount))
        except InvalidOperation as exc:
            raise ValueError("Please enter a positive amount to convert.") from exc
        if not value.is_finite() or value <= 0:
            raise ValueError("Please enter a positive amount to convert.")

        if from_currency.upper() == to_currency.upper():
            return value

        converted = value / self._rates.rate(from_currency) * self._rates.rate(to_currency)
        logger.info("Converted %s %s -> %s %s", value, from_currency, converted, to_currency)
        return converted
