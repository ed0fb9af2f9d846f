"""Shared test fixtures."""

import io

import pytest
from openpyxl import Workbook

from depo.db import create_engine_from_url, init_db, make_session_factory
from depo.products import Product, lowest_price_of

HEADER = ["STOK KODU", "FİRMA", "ÜRÜN ADI", "BİRİM", "LİSTE FİYATI", "%5", "%10", "%15", "KDV"]


def make_xlsx(rows, title="Fiyat Listesi"):
    """Build an in-memory .xlsx workbook whose first sheet holds ``rows``."""
    wb = Workbook()
    ws = wb.active
    ws.title = title
    for r in rows:
        ws.append(list(r))
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def make_product(
    name="Vida M8 Galvaniz",
    stock_code="V-001",
    source_file="ankara.xlsx",
    list_price=100.0,
    discounts=(None, None, None),
    company="Ankara Hırdavat",
):
    d5, d10, d15 = discounts
    return Product(
        stock_code=stock_code,
        company=company,
        product_name=name,
        list_price=list_price,
        discount_price_5=d5,
        discount_price_10=d10,
        discount_price_15=d15,
        lowest_price=lowest_price_of(list_price, [d5, d10, d15]),
        source_file=source_file,
    )


@pytest.fixture
def sheet_rows():
    """A current-layout supplier sheet with a mix of good and bad rows."""
    return [
        HEADER,
        ["A-100", "Acme", "Somun M8", "adet", 12.5, 11.9, 11.2, 10.6, 20],
        ["A-101", "Acme", "Pul 8mm", "paket", "45,90", "", "41,30", "", "20"],
        ["A-102", "", "Cıvata M10x40", "", "7,25"],
        ["A-103", "Acme", "", "adet", 10],
        ["A-104", "Acme", "Xy", "adet", 10],
        ["A-105", "Acme", "Rondela", "adet", 0],
        None,
        [],
        [None, "Acme", "Kodsuz ama isimli", "adet", 10],
        ["A-106", "Acme", "Dübel 6mm", "adet", "abc"],
    ]


@pytest.fixture
def xlsx_bytes(sheet_rows):
    return make_xlsx([r for r in sheet_rows if r])


@pytest.fixture
def session_factory():
    engine = create_engine_from_url("sqlite://")
    init_db(engine)
    return make_session_factory(engine)
