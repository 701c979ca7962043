from __future__ import annotations

import logging
import os
import time
from datetime import datetime
from html import escape
from typing import Sequence

from application.converter import format_currency
from domain.models import TransactionType
from domain.schemas import Transaction
from exporters.base import EXPORT_HEADERS, ExportError, Exporter, require_rows
from exporters.registry import register_exporter

logger = logging.getLogger(__name__)

_STYLES = """
@page { size: A4; margin: 12mm; }
body { font-family: sans-serif; font-size: 8pt; color: #111; }
h1 { font-size: 12pt; margin: 0 0 4mm 0; }
table { width: 100%; border-collapse: collapse; }
th { background: #6366f1; color: #fff; font-weight: bold; }
th, td { border: 1px solid #cbd5e1; padding: 2px 4px; text-align: left; }
tr:nth-child(even) td { background: #f8fafc; }
td.amount { text-align: right; white-space: nowrap; }
section.page { page-break-after: always; }
section.page:last-child { page-break-after: auto; }
footer { margin-top: 2mm; color: #64748b; }
"""


def _rows_per_page() -> int:
    return max(1, int(os.getenv("SMART_EXPENSE_PDF_ROWS_PER_PAGE", "35")))


def _display_amount(tx: Transaction) -> str:
    text = format_currency(tx.amount, tx.currency_code)
    return f"-{text}" if tx.type == TransactionType.EXPENSE else text


def _row(tx: Transaction) -> str:
    cells = [
        escape(tx.id),
        tx.date.isoformat(),
        escape(tx.description),
        escape(tx.category),
        tx.type.value,
        _display_amount(tx),
        escape(tx.currency_code),
        escape(tx.notes or ""),
    ]
    tds = "".join(
        f'<td class="amount">{cell}</td>' if idx == 5 else f"<td>{cell}</td>" for idx, cell in enumerate(cells)
    )
    return f"<tr>{tds}</tr>"


def render_html(
    transactions: Sequence[Transaction],
    rows_per_page: int | None = None,
    title: str = "Transactions",
    generated_at: datetime | None = None,
) -> str:
    require_rows(transactions)
    per_page = rows_per_page or _rows_per_page()
    generated_at = generated_at or datetime.now()
    header = "".join(f"<th>{escape(h)}</th>" for h in EXPORT_HEADERS)
    chunks = [transactions[i:i + per_page] for i in range(0, len(transactions), per_page)]

    pages = []
    for number, chunk in enumerate(chunks, start=1):
        body = "".join(_row(tx) for tx in chunk)
        pages.append(
            '<section class="page">'
            f"<h1>{escape(title)}</h1>"
            f"<table><thead><tr>{header}</tr></thead><tbody>{body}</tbody></table>"
            f"<footer>Page {number} of {len(chunks)} &middot; generated {generated_at:%Y-%m-%d %H:%M}</footer>"
            "</section>"
        )

    return (
        "<!doctype html><html><head><meta charset=\"utf-8\" />"
        f"<title>{escape(title)}</title><style>{_STYLES}</style></head>"
        f"<body>{''.join(pages)}</body></html>"
    )


@register_exporter
class PdfExporter(Exporter):
    name = "pdf"
    description = "Paginated printable table rendered to PDF (requires WeasyPrint)."
    media_type = "application/pdf"
    filename = "transactions.pdf"

    def export(self, transactions: Sequence[Transaction]) -> bytes:
        html = render_html(transactions)
        try:
            from weasyprint import HTML
        except Exception as exc:
            raise ExportError(
                "PDF export requires WeasyPrint and its system dependencies; install the 'pdf' extra and retry."
            ) from exc

        started = time.perf_counter()
        pdf_bytes = HTML(string=html).write_pdf()
        logger.info(
            "PDF export rows=%d pdf_size_bytes=%d in %.2fs",
            len(transactions),
            len(pdf_bytes),
            time.perf_counter() - started,
        )
        return pdf_bytes
