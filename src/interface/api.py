from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import asdict
from typing import Any, Iterator, List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response

from application.categorization import CategorizationService
from application.converter import CurrencyConverter, format_currency
from application.engine import LedgerEngine
from application.insights import InsightService
from application.summary import summarize
from application.validator import InvalidInputError
from domain.catalog import DEFAULT_CATEGORIES, search_currencies
from domain.models import Period
from domain.schemas import (
    BudgetInput,
    CategorizeRequest,
    ConversionRequest,
    DeleteTransactionsRequest,
    RecurringTransactionInput,
    SettingsUpdate,
    TransactionFilter,
    TransactionInput,
)
from exporters.base import ExportError
from exporters.registry import load_builtin_exporters
from interface.cli import build_engine


def _settings(engine: LedgerEngine) -> dict[str, Any]:
    return {
        "selected_currency": engine.state.selected_currency,
        "budget_alert_threshold": engine.state.budget_alert_threshold,
    }


def _filter(type: str, currency: str, start: Optional[str], end: Optional[str], sort_order: str, ids=None) -> TransactionFilter:
    return TransactionFilter.model_validate(
        {"type": type, "currency": currency, "start": start, "end": end, "sort_order": sort_order, "ids": ids or []}
    )


def create_app(
    engine: LedgerEngine | None = None,
    categorization: CategorizationService | None = None,
    insights: InsightService | None = None,
) -> FastAPI:
    """
    Sync endpoints run on the server's threadpool, so every route that reads or
    mutates the ledger does so inside `engine.session()`, which serializes the
    reconcile and the request's own work.
    """
    app = FastAPI(title="Smart Expense API")
    exporter_registry = load_builtin_exporters()
    services: dict[str, Any] = {"engine": engine, "categorization": categorization, "insights": insights}
    build_lock = threading.Lock()

    def current_engine() -> LedgerEngine:
        with build_lock:
            if services["engine"] is None:
                services["engine"] = build_engine()
            return services["engine"]

    @contextmanager
    def session() -> Iterator[LedgerEngine]:
        with current_engine().session() as active:
            yield active

    def get_categorization() -> CategorizationService:
        with build_lock:
            if services["categorization"] is None:
                services["categorization"] = CategorizationService()
            return services["categorization"]

    def get_insights() -> InsightService:
        with build_lock:
            if services["insights"] is None:
                services["insights"] = InsightService()
            return services["insights"]

    @app.exception_handler(InvalidInputError)
    def invalid_input(request: Request, exc: InvalidInputError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"issues": [asdict(issue) for issue in exc.issues]})

    @app.exception_handler(KeyError)
    def not_found(request: Request, exc: KeyError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc.args[0]) if exc.args else "Not found"})

    @app.exception_handler(ValueError)
    def bad_value(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ExportError)
    def export_failed(request: Request, exc: ExportError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    # ---- transactions ----
    @app.get("/transactions")
    def list_transactions(
        type: str = "all",
        currency: str = "ALL",
        start: Optional[str] = None,
        end: Optional[str] = None,
        sort_order: str = "desc",
    ) -> list[dict]:
        query = _filter(type, currency, start, end, sort_order)
        with session() as engine:
            return [tx.to_storage() for tx in engine.ledger.list_transactions(query)]

    @app.post("/transactions", status_code=201)
    def add_transaction(payload: TransactionInput) -> dict:
        with session() as engine:
            return engine.ledger.add_transaction(payload).to_storage()

    @app.get("/transactions/{tx_id}")
    def get_transaction(tx_id: str) -> dict:
        with session() as engine:
            return engine.ledger.get_transaction(tx_id).to_storage()

    @app.put("/transactions/{tx_id}")
    def update_transaction(tx_id: str, payload: TransactionInput) -> dict:
        with session() as engine:
            return engine.ledger.update_transaction(tx_id, payload).to_storage()

    @app.delete("/transactions/{tx_id}")
    def delete_transaction(tx_id: str) -> dict:
        with session() as engine:
            if not engine.ledger.delete_transactions(tx_id):
                raise KeyError(f"Transaction not found: {tx_id}")
        return {"deleted": 1}

    @app.post("/transactions/bulk-delete")
    def bulk_delete(payload: DeleteTransactionsRequest) -> dict:
        with session() as engine:
            return {"deleted": engine.ledger.delete_transactions(payload.ids)}

    # ---- recurring ----
    @app.get("/recurring")
    def list_recurring() -> list[dict]:
        with session() as engine:
            return [rule.to_storage() for rule in engine.state.recurring_transactions]

    @app.post("/recurring", status_code=201)
    def add_recurring(payload: RecurringTransactionInput) -> dict:
        with session() as engine:
            rule = engine.ledger.add_recurring(payload)
            created = engine.reconcile()
            stored = next(r for r in engine.state.recurring_transactions if r.id == rule.id)
            return {"rule": stored.to_storage(), "materialized": created}

    @app.put("/recurring/{rule_id}")
    def update_recurring(rule_id: str, payload: RecurringTransactionInput) -> dict:
        with session() as engine:
            return engine.ledger.update_recurring(rule_id, payload).to_storage()

    @app.delete("/recurring/{rule_id}")
    def delete_recurring(rule_id: str) -> dict:
        with session() as engine:
            if not engine.ledger.delete_recurring(rule_id):
                raise KeyError(f"Recurring transaction not found: {rule_id}")
        return {"deleted": 1}

    # ---- budgets ----
    @app.get("/budgets")
    def list_budgets() -> list[dict]:
        with session() as engine:
            return [b.to_storage() for b in engine.state.budgets]

    @app.put("/budgets")
    def save_budget(payload: BudgetInput) -> dict:
        with session() as engine:
            return engine.ledger.save_budget(payload).to_storage()

    @app.delete("/budgets/{category}")
    def delete_budget(category: str) -> dict:
        with session() as engine:
            if not engine.ledger.delete_budget(category):
                raise KeyError(f"Budget not found: {category}")
        return {"deleted": 1}

    # ---- settings & catalogs ----
    @app.get("/settings")
    def get_settings() -> dict:
        with session() as engine:
            return _settings(engine)

    @app.patch("/settings")
    def update_settings(payload: SettingsUpdate) -> dict:
        with session() as engine:
            if payload.selected_currency is not None:
                engine.ledger.set_currency(payload.selected_currency)
            if payload.budget_alert_threshold is not None:
                engine.ledger.set_alert_threshold(payload.budget_alert_threshold)
            return _settings(engine)

    @app.get("/categories")
    def categories() -> list[str]:
        return list(DEFAULT_CATEGORIES)

    @app.get("/currencies")
    def currencies(search: str = "") -> list[dict]:
        return [asdict(c) for c in search_currencies(search)]

    # ---- dashboard & AI ----
    @app.get("/dashboard")
    def dashboard(period: Period = Period.MONTHLY, currency: Optional[str] = None) -> Any:
        with session() as engine:
            return jsonable_encoder(engine.dashboard(period=period, currency_code=currency))

    @app.post("/categorize")
    def categorize(
        payload: CategorizeRequest,
        service: CategorizationService = Depends(get_categorization),
    ) -> dict:
        with session() as engine:
            overrides = list(engine.state.category_overrides)
        # The model call runs outside the lock.
        return asdict(service.suggest(payload.description, overrides))

    @app.post("/insights")
    def spending_insights(
        period: Period = Period.MONTHLY,
        service: InsightService = Depends(get_insights),
    ) -> dict:
        with session() as engine:
            currency = engine.state.selected_currency
            summary = summarize(engine.state.transactions, currency, period=period, today=engine.today())
            budgets = list(engine.state.budgets)
        result = service.request(summary, budgets, currency)
        return {"text": result.text, "sequence": result.sequence, "current": service.is_current(result)}

    @app.post("/convert")
    def convert(payload: ConversionRequest) -> dict:
        converted = CurrencyConverter().convert(payload.amount, payload.from_currency, payload.to_currency)
        return {
            "amount": str(payload.amount),
            "from_currency": payload.from_currency.upper(),
            "to_currency": payload.to_currency.upper(),
            "converted": str(converted),
            "formatted": format_currency(converted, payload.to_currency),
        }

    # ---- export ----
    @app.get("/exporters")
    def exporters() -> list[dict]:
        return [asdict(spec) for spec in exporter_registry.list_specs()]

    @app.get("/export/{fmt}")
    def export(
        fmt: str,
        type: str = "all",
        currency: str = "ALL",
        start: Optional[str] = None,
        end: Optional[str] = None,
        sort_order: str = "desc",
        ids: List[str] = Query(default=[]),
    ) -> Response:
        exporter = exporter_registry.get(fmt)
        query = _filter(type, currency, start, end, sort_order, ids)
        with session() as engine:
            rows = engine.ledger.list_transactions(query)
        body = exporter.export(rows)
        return Response(
            content=body,
            media_type=exporter.media_type,
            headers={"Content-Disposition": f'attachment; filename="{exporter.filename}"'},
        )

    return app


app = create_app()
