from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

CURRENCY_SYMBOLS: dict[str, str] = {
    "TRY": "₺",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}


def money(x: float | Decimal) -> Decimal:
    d = x if isinstance(x, Decimal) else Decimal(str(x))
    return d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def money_tr(n: float | Decimal) -> str:
    # 12.345,67 format
    return f"{money(n):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")


def format_price(n: float | Decimal, currency: str) -> str:
    code = (currency or "").strip().upper()
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol is None:
        return f"{money_tr(n)} {code}".strip()
    return f"{symbol}{money_tr(n)}"
