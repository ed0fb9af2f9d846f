from __future__ import annotations

import csv
from dataclasses import dataclass
import io
import logging
import math
import re
from pathlib import Path
from typing import Any, Sequence

from openpyxl import load_workbook

from depo.errors import ParseError
from depo.products import Product, lowest_price_of

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColumnLayout:
    """Zero-based column positions for each product field.

    ``None`` means the layout has no such column. Mapping is by position, not by
    header text: supplier headers are too inconsistent to match on.
    """

    name: str
    product_name: int
    list_price: int
    stock_code: int | None = None
    company: int | None = None
    unit: int | None = None
    discount_5: int | None = None
    discount_10: int | None = None
    discount_15: int | None = None
    vat_rate: int | None = None
    image_path: int | None = None


# Supplier sheets have drifted between these layouts:
# - current: STOK KODU, FIRMA, URUN ADI, BIRIM, LISTE FIYATI, %5, %10, %15, KDV
# - legacy:  STOK KODU, FIRMA, URUN ADI, BIRIM, RAF FIYATI, ISKONTO ORANI, LISTE FIYATI, RESIM
# - compact: URUN ADI, BIRIM, LISTE FIYATI, %5, %10, %15 (no code, no company)
LAYOUTS: dict[str, ColumnLayout] = {
    "current": ColumnLayout(
        name="current",
        stock_code=0,
        company=1,
        product_name=2,
        unit=3,
        list_price=4,
        discount_5=5,
        discount_10=6,
        discount_15=7,
        vat_rate=8,
    ),
    "legacy": ColumnLayout(
        name="legacy",
        stock_code=0,
        company=1,
        product_name=2,
        unit=3,
        list_price=6,
        image_path=7,
    ),
    "compact": ColumnLayout(
        name="compact",
        product_name=0,
        unit=1,
        list_price=2,
        discount_5=3,
        discount_10=4,
        discount_15=5,
    ),
}

DEFAULT_LAYOUT = LAYOUTS["current"]

_CURRENCY_MARKERS = re.compile(r"₺|TRY|TL|\$|€|£|\s", re.IGNORECASE)


def get_layout(name: str | None) -> ColumnLayout:
    key = (name or DEFAULT_LAYOUT.name).strip().casefold()
    try:
        return LAYOUTS[key]
    except KeyError:
        raise ValueError(f"Unknown column layout: {name!r} (expected one of: {', '.join(LAYOUTS)})") from None


def clean_text(value: Any) -> str:
    if value is None:
        return ""
    # openpyxl hands back 1001.0 for numeric stock codes in some sheets.
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_number(value: Any) -> float:
    """Parse a loosely typed cell as a float, returning 0.0 when it is not a number.

    Comma decimals are accepted ("12,50" -> 12.5). When both separators appear,
    the last one is the decimal separator ("1.234,56" and "1,234.56" -> 1234.56).
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        v = float(value)
        return v if math.isfinite(v) else 0.0

    s = str(value).strip()
    s = _CURRENCY_MARKERS.sub("", s)
    if not s:
        return 0.0

    if "," in s and "." in s:
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "")
        else:
            s = s.replace(",", "")
    s = s.replace(",", ".")

    try:
        v = float(s)
    except ValueError:
        return 0.0
    return v if math.isfinite(v) else 0.0


def _positive_or_none(value: float) -> float | None:
    return value if value > 0 else None


class SheetNormalizer:
    MIN_NAME_LENGTH = 3

    def __init__(self, filename: str, layout: ColumnLayout | None = None):
        self.filename = filename
        self.layout = layout or DEFAULT_LAYOUT
        self.company_fallback = Path(filename).stem

    def _row_to_product(self, row_index: int, row: Sequence[Any]) -> Product | None:
        layout = self.layout

        # Guard against short rows: missing trailing cells are empty.
        def at(idx: int | None) -> Any:
            if idx is None or idx < 0 or idx >= len(row):
                return None
            return row[idx]

        product_name = clean_text(at(layout.product_name))
        list_price = parse_number(at(layout.list_price))

        if len(product_name) < self.MIN_NAME_LENGTH:
            logger.debug("Skipped row %s of %s: product name %r too short", row_index, self.filename, product_name)
            return None
        if list_price <= 0:
            logger.debug("Skipped row %s of %s: list price %r not positive", row_index, self.filename, at(layout.list_price))
            return None

        d5 = _positive_or_none(parse_number(at(layout.discount_5)))
        d10 = _positive_or_none(parse_number(at(layout.discount_10)))
        d15 = _positive_or_none(parse_number(at(layout.discount_15)))

        stock_code = clean_text(at(layout.stock_code)) or f"{self.filename}-{row_index}"
        company = clean_text(at(layout.company)) or self.company_fallback

        return Product(
            stock_code=stock_code,
            company=company,
            product_name=product_name,
            unit=clean_text(at(layout.unit)) or None,
            list_price=list_price,
            discount_price_5=d5,
            discount_price_10=d10,
            discount_price_15=d15,
            vat_rate=_positive_or_none(parse_number(at(layout.vat_rate))),
            lowest_price=lowest_price_of(list_price, [d5, d10, d15]),
            image_path=clean_text(at(layout.image_path)) or None,
            source_file=self.filename,
        )

    def normalize(self, rows: Sequence[Sequence[Any] | None]) -> list[Product]:
        out: list[Product] = []
        # Row 0 is the header.
        for i in range(1, len(rows)):
            row = rows[i]
            if not row or clean_text(row[0]) == "":
                continue
            product = self._row_to_product(i, row)
            if product is not None:
                out.append(product)
        return out


def normalize(
    rows: Sequence[Sequence[Any] | None],
    filename: str,
    layout: ColumnLayout | None = None,
) -> list[Product]:
    return SheetNormalizer(filename, layout).normalize(rows)


def _read_xlsx(data: bytes, filename: str) -> list[list[Any]]:
    try:
        # read_only avoids building cell objects; values_only keeps plain Python values.
        wb = load_workbook(filename=io.BytesIO(data), read_only=True, data_only=True)
    except Exception as e:
        raise ParseError(filename, f"cannot read workbook ({e})") from e

    try:
        if not wb.worksheets:
            return []
        ws = wb.worksheets[0]
        return [list(r) for r in ws.iter_rows(values_only=True)]
    except Exception as e:
        raise ParseError(filename, f"cannot read worksheet ({e})") from e
    finally:
        wb.close()


def _decode_text(data: bytes, filename: str) -> str:
    if b"\x00" in data:
        raise ParseError(filename, "file is binary, not CSV text")
    # Excel on Turkish Windows saves CSV as cp1254 unless UTF-8 is chosen explicitly.
    for encoding in ("utf-8-sig", "cp1254"):
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise ParseError(filename, "cannot decode CSV text")


def _read_csv(data: bytes, filename: str) -> list[list[Any]]:
    text = _decode_text(data, filename)
    try:
        dialect = csv.Sniffer().sniff(text[:4096], delimiters=";,\t")
    except csv.Error:
        dialect = csv.excel
    try:
        return [list(r) for r in csv.reader(io.StringIO(text), dialect)]
    except csv.Error as e:
        raise ParseError(filename, f"malformed CSV ({e})") from e


def read_sheet(data: bytes, filename: str) -> list[list[Any]]:
    """Decode the first worksheet of an uploaded spreadsheet into a grid of cell values."""
    ext = Path(filename).suffix.lower()
    if ext in (".xlsx", ".xlsm"):
        return _read_xlsx(data, filename)
    if ext == ".csv":
        return _read_csv(data, filename)
    if ext == ".xls":
        raise ParseError(filename, "legacy .xls workbooks are not supported, save the file as .xlsx")
    if data[:2] == b"PK":
        return _read_xlsx(data, filename)
    raise ParseError(filename, f"unsupported file type {ext or '(none)'}")


def parse_upload(data: bytes, filename: str, layout: ColumnLayout | None = None) -> list[Product]:
    rows = read_sheet(data, filename)
    logger.info("Processing %s with %s rows", filename, len(rows))
    products = normalize(rows, filename, layout)
    logger.info("Parsed %s products from %s", len(products), filename)
    return products
