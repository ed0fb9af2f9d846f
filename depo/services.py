from __future__ import annotations

from dataclasses import dataclass
import logging

from sqlalchemy.orm import Session

from depo.errors import InvalidMargin
from depo.formatting import format_price, money
from depo.pricing import PriceQuote, RateTable, price
from depo.products import Product
from depo.repos import CalculationRepo

logger = logging.getLogger(__name__)

MARGIN_RANGE = (0.0, 1000.0)
DISCOUNT_RANGE = (0.0, 100.0)


@dataclass(frozen=True)
class CalculationResult:
    ok: bool
    error: str | None = None
    product: Product | None = None
    quote: PriceQuote | None = None

    def as_dict(self) -> dict:
        if not self.ok or self.quote is None or self.product is None:
            return {"ok": False, "error": self.error}
        q = self.quote
        rounded = q.rounded()
        return {
            "ok": True,
            "stock_code": self.product.stock_code,
            "product_name": self.product.product_name,
            "company": self.product.company,
            "source_file": self.product.source_file,
            "currency": q.currency,
            "margin_percent": q.margin_percent,
            "extra_discount_percent": q.extra_discount_percent,
            "cost_price": float(rounded["cost_price"]),
            "cost_before_discount": float(rounded["cost_before_discount"]),
            "profit_amount": float(rounded["profit_amount"]),
            "selling_price": float(rounded["selling_price"]),
            "cost_price_display": format_price(q.cost_price, q.currency),
            "profit_amount_display": format_price(q.profit_amount, q.currency),
            "selling_price_display": format_price(q.selling_price, q.currency),
        }


def _as_float(value, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number") from None


class CalculatorService:
    def __init__(self, session: Session | None = None, rates: RateTable | None = None):
        self.session = session
        self.rates = rates or RateTable()
        self.calculations = CalculationRepo(session) if session is not None else None

    def calculate(
        self,
        product: Product,
        margin_percent: float,
        extra_discount_percent: float = 0.0,
        currency: str | None = None,
    ) -> CalculationResult:
        try:
            m = _as_float(margin_percent, "Margin")
            d = _as_float(extra_discount_percent or 0, "Extra discount")
        except ValueError as e:
            return CalculationResult(ok=False, error=str(e), product=product)

        if not (MARGIN_RANGE[0] <= m <= MARGIN_RANGE[1]):
            return CalculationResult(ok=False, error="Margin must be between 0 and 1000", product=product)
        if not (DISCOUNT_RANGE[0] <= d <= DISCOUNT_RANGE[1]):
            return CalculationResult(ok=False, error="Extra discount must be between 0 and 100", product=product)

        try:
            quote = price(product, m, d, currency or self.rates.base, self.rates)
        except InvalidMargin as e:
            return CalculationResult(ok=False, error=str(e), product=product)

        return CalculationResult(ok=True, product=product, quote=quote)

    def save(self, user_id: str, result: CalculationResult) -> int:
        """Persist a successful calculation; prices are stored in the base currency."""
        if self.calculations is None:
            raise RuntimeError("CalculatorService was created without a database session")
        if not result.ok or result.quote is None or result.product is None:
            raise ValueError(result.error or "Cannot save a failed calculation")
        if not (user_id or "").strip():
            raise ValueError("user_id is required")

        q = result.quote
        row = self.calculations.add(
            user_id=user_id,
            product_name=result.product.product_name,
            supplier_name=result.product.source_file,
            original_price=result.product.lowest_price,
            margin_percent=q.margin_percent,
            final_price=money(q.selling_price_in_base(self.rates)),
            currency=q.currency,
        )
        logger.info("Saved calculation %s for %s", row.id, result.product.product_name)
        return int(row.id)
