from __future__ import annotations

from dataclasses import dataclass, field


def lowest_price_of(list_price: float, tiers: list[float | None]) -> float:
    positive = [t for t in tiers if t is not None and t > 0]
    return min(positive) if positive else list_price


@dataclass(frozen=True)
class Product:
    """Normalized supplier price-list row.

    Prices are in the base currency of the uploaded list (TRY). ``lowest_price``
    is the cost basis used for pricing: the cheapest positive discount tier, or
    the list price when the supplier gives no discounts.
    """

    stock_code: str
    company: str
    product_name: str
    list_price: float
    lowest_price: float
    source_file: str
    unit: str | None = None
    discount_price_5: float | None = None
    discount_price_10: float | None = None
    discount_price_15: float | None = None
    vat_rate: float | None = None
    image_path: str | None = None

    def discount_tiers(self) -> list[float]:
        return [
            t
            for t in (self.discount_price_5, self.discount_price_10, self.discount_price_15)
            if t is not None
        ]


@dataclass(frozen=True)
class UploadedFile:
    name: str
    products: tuple[Product, ...] = field(default_factory=tuple)
