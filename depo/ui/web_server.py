from __future__ import annotations

from dataclasses import asdict
import logging

from flask import Flask, Response, jsonify, request

from depo.catalog import Catalog
from depo.db import session_scope
from depo.excel_import import get_layout
from depo.pricing import RateTable, load_rate_table
from depo.repos import CalculationRepo
from depo.services import CalculatorService
from depo.settings import Settings

logger = logging.getLogger(__name__)


def create_app(
    session_factory,
    settings: Settings,
    *,
    catalog: Catalog | None = None,
    rates: RateTable | None = None,
) -> Flask:
    if catalog is None:
        catalog = Catalog(
            max_files=settings.MAX_UPLOADED_FILES,
            search_limit=settings.SEARCH_LIMIT,
            layout=get_layout(settings.COLUMN_LAYOUT),
        )
    if rates is None:
        rates = load_rate_table(settings.rates_path, base=settings.BASE_CURRENCY)

    app = Flask(__name__, static_folder=None)
    app.config["CATALOG"] = catalog

    def _ok(payload):
        return jsonify(payload)

    def _lookup(data: dict):
        source_file = str(data.get("source_file") or "").strip()
        stock_code = str(data.get("stock_code") or "").strip()
        return catalog.find(source_file, stock_code)

    @app.get("/health")
    def health() -> Response:
        return jsonify({"ok": True, "app": settings.APP_NAME})

    # --- Uploads ---
    @app.post("/api/uploadFiles")
    def api_upload_files():
        files = [f for f in request.files.getlist("files") if f is not None and f.filename]
        if not files:
            return _ok({"ok": False, "error": "No files received"})

        batch = catalog.upload_batch([(f.filename, f.read()) for f in files])
        return _ok(
            {
                "ok": batch.ok,
                "error": batch.error,
                "outcomes": [o.as_dict() for o in batch.outcomes],
                "summary": catalog.summary(),
            }
        )

    @app.post("/api/removeFile")
    def api_remove_file():
        data = request.get_json(silent=True) or {}
        name = str(data.get("name") or "").strip()
        if catalog.get(name) is None:
            return _ok({"ok": False, "error": f"{name} is not uploaded"})
        removed = catalog.remove(name)
        return _ok({"ok": True, "removed": removed, "summary": catalog.summary()})

    @app.get("/api/listFiles")
    def api_list_files():
        return _ok(
            {
                "ok": True,
                "files": [{"name": u.name, "products": len(u.products)} for u in catalog.uploaded_files],
                "max_files": catalog.max_files,
            }
        )

    @app.get("/api/getSummary")
    def api_get_summary():
        return _ok({"ok": True, **catalog.summary()})

    # --- Search ---
    @app.post("/api/searchProducts")
    def api_search_products():
        data = request.get_json(silent=True) or {}
        limit = data.get("limit")
        try:
            limit = int(limit) if limit is not None else None
        except (TypeError, ValueError):
            return _ok({"ok": False, "error": "limit must be an integer"})
        rows = catalog.search(data.get("q", ""), limit)
        return _ok({"ok": True, "products": [asdict(p) for p in rows]})

    # --- Pricing ---
    @app.get("/api/getRates")
    def api_get_rates():
        return _ok({"ok": True, "base": rates.base, "rates": rates.as_dict()})

    @app.post("/api/calculate")
    def api_calculate():
        data = request.get_json(silent=True) or {}
        product = _lookup(data)
        if product is None:
            return _ok({"ok": False, "error": "Product not found"})
        service = CalculatorService(rates=rates)
        result = service.calculate(
            product,
            data.get("margin_percent", settings.DEFAULT_MARGIN_PERCENT),
            data.get("extra_discount_percent", 0),
            data.get("currency") or settings.BASE_CURRENCY,
        )
        return _ok(result.as_dict())

    @app.post("/api/saveCalculation")
    def api_save_calculation():
        data = request.get_json(silent=True) or {}
        user_id = str(data.get("user_id") or "").strip()
        if not user_id:
            return _ok({"ok": False, "error": "user_id is required"})
        product = _lookup(data)
        if product is None:
            return _ok({"ok": False, "error": "Product not found"})

        with session_scope(session_factory) as session:
            service = CalculatorService(session, rates)
            result = service.calculate(
                product,
                data.get("margin_percent", settings.DEFAULT_MARGIN_PERCENT),
                data.get("extra_discount_percent", 0),
                data.get("currency") or settings.BASE_CURRENCY,
            )
            if not result.ok:
                return _ok(result.as_dict())
            calc_id = service.save(user_id, result)

        return _ok({**result.as_dict(), "id": calc_id})

    @app.get("/api/listCalculations")
    def api_list_calculations():
        user_id = (request.args.get("user_id") or "").strip()
        try:
            limit = int(request.args.get("limit", "50"))
        except ValueError:
            return _ok({"ok": False, "error": "limit must be an integer"})
        with session_scope(session_factory) as session:
            rows = CalculationRepo(session).list_for_user(user_id, limit)
            out = [
                {
                    "id": int(r.id),
                    "created_at": r.created_at.isoformat(),
                    "product_name": r.product_name,
                    "supplier_name": r.supplier_name,
                    "original_price": float(r.original_price),
                    "margin_percent": float(r.margin_percent),
                    "final_price": float(r.final_price),
                    "currency": r.currency,
                }
                for r in rows
            ]
        return _ok({"ok": True, "calculations": out})

    return app
