from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
import json
import logging
import math
from pathlib import Path
from typing import Iterable, Mapping

from depo.errors import InvalidMargin
from depo.formatting import money
from depo.products import Product

logger = logging.getLogger(__name__)

BASE_CURRENCY = "TRY"

# Units of each currency per 1 TRY.
DEFAULT_RATES: dict[str, float] = {
    "TRY": 1.0,
    "USD": 0.031,
    "EUR": 0.028,
    "GBP": 0.024,
}


class RateTable:
    """Injected exchange rates: units of a currency per 1 unit of the base currency.

    Currencies missing from the table convert at rate 1.
    """

    def __init__(self, rates: Mapping[str, float] | None = None, *, base: str = BASE_CURRENCY):
        self.base = base.strip().upper()
        self._rates: dict[str, float] = {self.base: 1.0}
        for code, rate in (DEFAULT_RATES if rates is None else rates).items():
            r = float(rate)
            if not math.isfinite(r) or r <= 0:
                raise ValueError(f"Exchange rate for {code} must be positive, got {rate!r}")
            self._rates[str(code).strip().upper()] = r

    def rate(self, currency: str | None) -> float:
        return self._rates.get((currency or self.base).strip().upper(), 1.0)

    def currencies(self) -> list[str]:
        return list(self._rates)

    def as_dict(self) -> dict[str, float]:
        return dict(self._rates)


def load_rate_table(path: Path, *, base: str = BASE_CURRENCY) -> RateTable:
    if not path.exists():
        logger.info("Rate file %s not found, using default rates", path)
        return RateTable(base=base)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Rate file {path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Rate file {path} must contain a JSON object of currency -> rate")
    return RateTable(data, base=base)


def convert_to_currency(amount: float, currency: str, rates: RateTable) -> float:
    """Base-currency amount -> ``currency``."""
    return amount * rates.rate(currency)


def convert_from_currency(amount: float, currency: str, rates: RateTable) -> float:
    """``currency`` amount -> base currency."""
    return amount / rates.rate(currency)


@dataclass(frozen=True)
class PriceQuote:
    """Cost, profit and sale price in ``currency``, kept at full float precision.

    ``cost_price`` is the cost after the extra discount, so
    ``cost_price + profit_amount == selling_price``. Round with
    :meth:`rounded` only when presenting the values.
    """

    cost_price: float
    cost_before_discount: float
    profit_amount: float
    selling_price: float
    currency: str
    margin_percent: float
    extra_discount_percent: float = 0.0

    def rounded(self) -> dict[str, Decimal]:
        return {
            "cost_price": money(self.cost_price),
            "cost_before_discount": money(self.cost_before_discount),
            "profit_amount": money(self.profit_amount),
            "selling_price": money(self.selling_price),
        }

    def selling_price_in_base(self, rates: RateTable) -> float:
        return convert_from_currency(self.selling_price, self.currency, rates)


def selling_price_for(cost: float, margin_percent: float, extra_discount_percent: float = 0.0) -> float:
    """Margin-on-revenue: ``margin_percent`` of the sale price is profit.

    cost=100, margin=20 -> 125 (not 120).
    """
    m = float(margin_percent)
    d = float(extra_discount_percent)
    if not math.isfinite(m) or m >= 100:
        raise InvalidMargin(m)
    if not math.isfinite(d):
        raise ValueError(f"Extra discount must be a finite number, got {extra_discount_percent!r}")
    discounted = cost * (1 - d / 100)
    return discounted / (1 - m / 100)


def price(
    product: Product | float,
    margin_percent: float,
    extra_discount_percent: float = 0.0,
    currency: str = BASE_CURRENCY,
    rates: RateTable | None = None,
) -> PriceQuote:
    """Price one product (or a bare base-currency cost) in ``currency``.

    The cost basis is the product's lowest price. Range checks on the inputs
    belong to the caller; the only refusal here is a margin of 100% or more,
    which would make the sale price infinite or negative.
    """
    rates = rates or RateTable()
    base_cost = product.lowest_price if isinstance(product, Product) else float(product)
    code = (currency or rates.base).strip().upper()

    cost = convert_to_currency(base_cost, code, rates)
    selling = selling_price_for(cost, margin_percent, extra_discount_percent)
    discounted = cost * (1 - float(extra_discount_percent) / 100)

    return PriceQuote(
        cost_price=discounted,
        cost_before_discount=cost,
        profit_amount=selling - discounted,
        selling_price=selling,
        currency=code,
        margin_percent=float(margin_percent),
        extra_discount_percent=float(extra_discount_percent),
    )


def price_many(
    products: Iterable[Product],
    margin_percent: float,
    extra_discount_percent: float = 0.0,
    currency: str = BASE_CURRENCY,
    rates: RateTable | None = None,
) -> list[PriceQuote]:
    rates = rates or RateTable()
    return [price(p, margin_percent, extra_discount_percent, currency, rates) for p in products]
