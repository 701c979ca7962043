from __future__ import annotations

from decimal import Decimal

from domain.catalog import EXCHANGE_RATES


class UnsupportedCurrencyError(ValueError):
    pass


class ExchangeRateTable:
    """Static rate table; every rate is units of that currency per one base unit."""

    def __init__(self, rates: dict[str, Decimal] | None = None) -> None:
        source = EXCHANGE_RATES if rates is None else rates
        self._rates: dict[str, Decimal] = {code.upper(): Decimal(str(rate)) for code, rate in source.items()}

    def codes(self) -> list[str]:
        return sorted(self._rates)

    def has(self, code: str) -> bool:
        return (code or "").upper() in self._rates

    def rate(self, code: str) -> Decimal:
        key = (code or "").upper()
        if key not in self._rates:
            raise UnsupportedCurrencyError(f"Conversion rate not available for {code!r}")
        return self._rates[key]
