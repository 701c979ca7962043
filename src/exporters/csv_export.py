from __future__ import annotations

from decimal import Decimal
from typing import Sequence

from domain.models import TransactionType
from domain.schemas import Transaction
from exporters.base import EXPORT_HEADERS, Exporter, require_rows
from exporters.registry import register_exporter


def _quoted(text: str | None) -> str:
    return '"' + (text or "").replace('"', '""') + '"'


def signed_amount(tx: Transaction) -> str:
    amount = f"{Decimal(tx.amount):.2f}"
    return f"-{amount}" if tx.type == TransactionType.EXPENSE else amount


def to_csv(transactions: Sequence[Transaction]) -> str:
    """
    Text fields (description, category, notes) are always quoted with embedded
    quotes doubled; expense amounts are negative.
    """
    require_rows(transactions)
    lines = [",".join(EXPORT_HEADERS)]
    for tx in transactions:
        lines.append(
            ",".join(
                [
                    tx.id,
                    tx.date.isoformat(),
                    _quoted(tx.description),
                    _quoted(tx.category),
                    tx.type.value,
                    signed_amount(tx),
                    tx.currency_code,
                    _quoted(tx.notes),
                ]
            )
        )
    return "\n".join(lines)


@register_exporter
class CsvExporter(Exporter):
    name = "csv"
    description = "Delimited text with one row per transaction."
    media_type = "text/csv; charset=utf-8"
    filename = "transactions.csv"

    def export(self, transactions: Sequence[Transaction]) -> bytes:
        return to_csv(transactions).encode("utf-8")
