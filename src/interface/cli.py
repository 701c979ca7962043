from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from application.categorization import CategorizationService
from application.converter import CurrencyConverter, format_currency
from application.engine import LedgerEngine
from application.insights import InsightService
from application.summary import summarize
from application.validator import InvalidInputError
from domain.models import Frequency, Period, TransactionType
from domain.schemas import BudgetInput, RecurringTransactionInput, TransactionFilter, TransactionInput
from exporters.base import ExportError
from exporters.registry import load_builtin_exporters
from infrastructure.currency.rates import UnsupportedCurrencyError
from infrastructure.persistence.state_repository import StateRepository
from infrastructure.persistence.store import JsonFileStore


def build_engine(data_path: str | None = None) -> LedgerEngine:
    engine = LedgerEngine(repository=StateRepository(JsonFileStore(data_path)))
    engine.reconcile()
    return engine


def cmd_add(engine: LedgerEngine, args: argparse.Namespace) -> int:
    category = args.category
    suggested = None
    if category is None:
        suggestion = CategorizationService().suggest(args.description, engine.state.category_overrides)
        category = suggested = suggestion.category
        print(f"Suggested category: {category} ({suggestion.source})")
    tx = engine.ledger.add_transaction(
        TransactionInput(
            description=args.description,
            amount=args.amount,
            type=TransactionType(args.type),
            date=args.date,
            category=category,
            notes=args.notes,
            currency_code=args.currency or engine.state.selected_currency,
            ai_suggested_category=suggested,
        )
    )
    print(f"Saved {tx.id}: {tx.date} {tx.description} {format_currency(tx.amount, tx.currency_code)} [{tx.category}]")
    return 0


def cmd_list(engine: LedgerEngine, args: argparse.Namespace) -> int:
    rows = engine.ledger.list_transactions(
        TransactionFilter(type=args.type, currency=args.currency, start=args.start, end=args.end, sort_order=args.sort)
    )
    if not rows:
        print("No transactions yet.")
        return 0
    for tx in rows:
        sign = "-" if tx.type == TransactionType.EXPENSE else "+"
        print(f"{tx.id}  {tx.date}  {sign}{format_currency(tx.amount, tx.currency_code):>14}  {tx.category:<14} {tx.description}")
    return 0


def cmd_delete(engine: LedgerEngine, args: argparse.Namespace) -> int:
    removed = engine.ledger.delete_transactions(args.ids)
    print(f"Deleted {removed} transaction(s).")
    return 0


def cmd_recur(engine: LedgerEngine, args: argparse.Namespace) -> int:
    rule = engine.ledger.add_recurring(
        RecurringTransactionInput(
            description=args.description,
            amount=args.amount,
            type=TransactionType(args.type),
            category=args.category,
            frequency=args.frequency,
            start_date=args.start,
            notes=args.notes,
            currency_code=args.currency or engine.state.selected_currency,
        )
    )
    added = engine.reconcile()
    print(f"Saved recurring {rule.id} ({rule.frequency}); materialized {added} transaction(s).")
    return 0


def cmd_budget(engine: LedgerEngine, args: argparse.Namespace) -> int:
    if args.delete:
        engine.ledger.delete_budget(args.category)
        print(f"Deleted budget for {args.category}.")
        return 0
    budget = engine.ledger.save_budget(BudgetInput(category=args.category, amount=args.amount))
    print(f"Budget for {budget.category}: {budget.amount}")
    return 0


def cmd_dashboard(engine: LedgerEngine, args: argparse.Namespace) -> int:
    if args.threshold is not None:
        engine.ledger.set_alert_threshold(args.threshold)
    if args.currency:
        engine.ledger.set_currency(args.currency)
    board = engine.dashboard(period=args.period)
    code = board.currency_code
    print(f"{board.period.value.title()} summary ({code})")
    print(f"  Income:      {format_currency(board.summary.total_income, code)}")
    print(f"  Expenses:    {format_currency(board.summary.total_expense, code)}")
    print(f"  Net savings: {format_currency(board.summary.net_savings, code)}")
    for cb in board.summary.category_breakdown:
        print(f"    {cb.category:<14} {format_currency(cb.amount, code)}")
    for alert in board.alerts:
        print(
            f"  ! {alert.category}: {alert.percentage:.0f}% of {format_currency(alert.budget, code)} "
            f"(spent {format_currency(alert.spent, code)})"
        )
    return 0


def cmd_convert(engine: LedgerEngine, args: argparse.Namespace) -> int:
    converted = CurrencyConverter().convert(args.amount, args.from_currency, args.to_currency)
    print(
        f"{format_currency(args.amount, args.from_currency)} is approximately "
        f"{format_currency(converted, args.to_currency)}"
    )
    return 0


def cmd_export(engine: LedgerEngine, args: argparse.Namespace) -> int:
    rows = engine.ledger.list_transactions(TransactionFilter(sort_order="asc", ids=args.ids or []))
    exporter = load_builtin_exporters().get(args.format)
    output = Path(args.output or exporter.filename)
    output.write_bytes(exporter.export(rows))
    print(f"Exported {len(rows)} transaction(s) to {output}")
    return 0


def cmd_insights(engine: LedgerEngine, args: argparse.Namespace) -> int:
    currency = engine.state.selected_currency
    summary = summarize(engine.state.transactions, currency, period=args.period, today=engine.today())
    result = InsightService().request(summary, engine.state.budgets, currency)
    print(result.text)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser("smart-expense")
    p.add_argument("--data", default=None, help="Path to the JSON store (default: $SMART_EXPENSE_DATA_PATH)")
    sub = p.add_subparsers(dest="cmd")

    a = sub.add_parser("add", help="Record a transaction")
    a.add_argument("description")
    a.add_argument("amount")
    a.add_argument("--type", choices=[t.value for t in TransactionType], default="expense")
    a.add_argument("--date", help="YYYY-MM-DD (default: today)", default=None)
    a.add_argument("--category", default=None, help="Omit to ask the categorizer")
    a.add_argument("--notes", default=None)
    a.add_argument("--currency", default=None)
    a.set_defaults(handler=cmd_add)

    ls = sub.add_parser("list", help="List transactions")
    ls.add_argument("--type", choices=["all", "income", "expense"], default="all")
    ls.add_argument("--currency", default="ALL")
    ls.add_argument("--start", default=None)
    ls.add_argument("--end", default=None)
    ls.add_argument("--sort", choices=["asc", "desc"], default="desc")
    ls.set_defaults(handler=cmd_list)

    d = sub.add_parser("delete", help="Delete transactions by id")
    d.add_argument("ids", nargs="+")
    d.set_defaults(handler=cmd_delete)

    r = sub.add_parser("recur", help="Add a recurring transaction")
    r.add_argument("description")
    r.add_argument("amount")
    r.add_argument("--frequency", choices=[f.value for f in Frequency], default="monthly")
    r.add_argument("--start", default=None, help="YYYY-MM-DD (default: today)")
    r.add_argument("--type", choices=[t.value for t in TransactionType], default="expense")
    r.add_argument("--category", default="Others")
    r.add_argument("--notes", default=None)
    r.add_argument("--currency", default=None)
    r.set_defaults(handler=cmd_recur)

    b = sub.add_parser("budget", help="Set or delete a category budget")
    b.add_argument("category")
    b.add_argument("amount", nargs="?", default=None)
    b.add_argument("--delete", action="store_true")
    b.set_defaults(handler=cmd_budget)

    s = sub.add_parser("dashboard", help="Show the period summary and budget alerts")
    s.add_argument("--period", choices=[p.value for p in Period], default="monthly")
    s.add_argument("--currency", default=None)
    s.add_argument("--threshold", type=int, default=None)
    s.set_defaults(handler=cmd_dashboard)

    c = sub.add_parser("convert", help="Convert an amount with the static rate table")
    c.add_argument("amount")
    c.add_argument("from_currency")
    c.add_argument("to_currency")
    c.set_defaults(handler=cmd_convert)

    e = sub.add_parser("export", help="Export transactions")
    e.add_argument("format", choices=load_builtin_exporters().names())
    e.add_argument("--ids", nargs="+", default=None, help="Export only these transaction ids")
    e.add_argument("--output", default=None)
    e.set_defaults(handler=cmd_export)

    i = sub.add_parser("insights", help="Ask the language model for spending advice")
    i.add_argument("--period", choices=[p.value for p in Period], default="monthly")
    i.set_defaults(handler=cmd_insights)
    return p


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 1

    engine = build_engine(args.data)
    if getattr(args, "date", "unset") is None:
        args.date = engine.today()
    if getattr(args, "start", "unset") is None and args.cmd == "recur":
        args.start = engine.today()

    try:
        return handler(engine, args)
    except InvalidInputError as exc:
        for issue in exc.issues:
            print(f"error: {issue.message}", file=sys.stderr)
        return 2
    except (UnsupportedCurrencyError, ExportError, ValueError, KeyError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
