"""Tests for depo/excel_import.py"""

import random

import pytest

from depo.errors import ParseError
from depo.excel_import import (
    LAYOUTS,
    clean_text,
    get_layout,
    normalize,
    parse_number,
    parse_upload,
    read_sheet,
)
from tests.conftest import HEADER, make_xlsx


class TestParseNumber:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (12.5, 12.5),
            (7, 7.0),
            ("12,5", 12.5),
            ("12,50", 12.5),
            ("12.50", 12.5),
            ("1.234,56", 1234.56),
            ("1,234.56", 1234.56),
            (" 45,90 ", 45.9),
            ("45,90 TL", 45.9),
            ("45,90 Tl", 45.9),
            ("12,5try", 12.5),
            ("\u00a03\u202f250,75\u00a0₺", 3250.75),
            ("₺1.250,00", 1250.0),
        ],
    )
    def test_parses(self, value, expected):
        assert parse_number(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", [None, "", "   ", "abc", "nan", "inf", True, float("nan")])
    def test_unparseable_is_zero(self, value):
        assert parse_number(value) == 0.0


class TestCleanText:
    def test_none_is_empty(self):
        assert clean_text(None) == ""

    def test_trims(self):
        assert clean_text("  Somun M8 \t") == "Somun M8"

    def test_whole_float_has_no_decimal_suffix(self):
        assert clean_text(1001.0) == "1001"
        assert clean_text(12.5) == "12.5"
        assert clean_text(1001) == "1001"


class TestLayouts:
    def test_default_is_current(self):
        assert get_layout(None) is LAYOUTS["current"]
        assert get_layout("CURRENT") is LAYOUTS["current"]

    def test_unknown_layout(self):
        with pytest.raises(ValueError, match="Unknown column layout"):
            get_layout("nine-columns")


class TestNormalize:
    def test_accepts_only_valid_rows(self, sheet_rows):
        products = normalize(sheet_rows, "acme.xlsx")
        assert [p.stock_code for p in products] == ["A-100", "A-101", "A-102"]

    def test_full_row(self, sheet_rows):
        p = normalize(sheet_rows, "acme.xlsx")[0]
        assert p.company == "Acme"
        assert p.product_name == "Somun M8"
        assert p.unit == "adet"
        assert p.list_price == 12.5
        assert (p.discount_price_5, p.discount_price_10, p.discount_price_15) == (11.9, 11.2, 10.6)
        assert p.vat_rate == 20
        assert p.lowest_price == 10.6
        assert p.source_file == "acme.xlsx"
        assert p.image_path is None

    def test_comma_decimals_and_missing_tiers(self, sheet_rows):
        p = normalize(sheet_rows, "acme.xlsx")[1]
        assert p.list_price == pytest.approx(45.9)
        assert p.discount_price_5 is None
        assert p.discount_price_10 == pytest.approx(41.3)
        assert p.discount_price_15 is None
        assert p.lowest_price == pytest.approx(41.3)
        assert p.discount_tiers() == [pytest.approx(41.3)]

    def test_short_row_and_company_fallback(self, sheet_rows):
        p = normalize(sheet_rows, "acme.fiyat.xlsx")[2]
        assert p.company == "acme.fiyat"
        assert p.unit is None
        assert p.lowest_price == pytest.approx(7.25)
        assert p.vat_rate is None

    def test_compact_stock_code_generated_from_filename_and_row(self):
        rows = [["ÜRÜN ADI", "BİRİM", "FİYAT"], ["Somun M8", "adet", "10"]]
        (p,) = normalize(rows, "b.csv", LAYOUTS["compact"])
        assert p.stock_code == "b.csv-1"
        assert p.company == "b"

    def test_current_layout_keeps_explicit_stock_code(self):
        (p,) = normalize([HEADER, ["x", "", "Somun M8", "", 10]], "b.csv")
        assert p.stock_code == "x"

    def test_header_row_always_skipped(self):
        rows = [["H-1", "Firma", "Başlık ürün", "adet", 99]]
        assert normalize(rows, "h.xlsx") == []

    def test_stock_code_only_row_is_dropped(self):
        assert normalize([HEADER, ["A-1"]], "a.xlsx") == []

    def test_name_of_two_chars_dropped_even_with_price(self):
        assert normalize([HEADER, ["A-1", "Acme", " Ab ", "adet", 50, 40, 30, 20, 18]], "a.xlsx") == []

    def test_extra_columns_ignored(self):
        row = ["A-1", "Acme", "Somun M8", "adet", 10, 0, 0, 0, 20, "ignored", 999]
        (p,) = normalize([HEADER, row], "a.xlsx")
        assert p.lowest_price == 10
        assert p.image_path is None

    def test_order_preserved(self):
        rows = [HEADER] + [[f"C-{i}", "Acme", f"Ürün {i:03d}", "adet", 100 - i] for i in range(20)]
        products = normalize(rows, "a.xlsx")
        assert [p.stock_code for p in products] == [f"C-{i}" for i in range(20)]

    def test_legacy_layout(self):
        rows = [
            ["STOK KODU", "FİRMA", "ÜRÜN ADI", "BİRİM", "RAF FİYATI", "İSKONTO ORANI", "LİSTE FİYATI", "RESİM"],
            ["L-1", "Eski", "Menteşe 35mm", "adet", "20,00", "15", "17,00", " img/l1.jpg "],
        ]
        (p,) = normalize(rows, "eski.xlsx", LAYOUTS["legacy"])
        assert p.list_price == pytest.approx(17.0)
        assert p.lowest_price == pytest.approx(17.0)
        assert p.image_path == "img/l1.jpg"
        assert p.discount_tiers() == []


class TestNormalizeProperties:
    def _random_cell(self, rng):
        return rng.choice([None, "", 0, -5, "0", "abc", rng.uniform(0.01, 500), f"{rng.uniform(0.01, 500):.2f}".replace(".", ",")])

    def test_rejects_short_names_and_non_positive_prices(self):
        rng = random.Random(20240601)
        for _ in range(300):
            name = rng.choice(["", "A", "Ab", " Ab ", "Abc", "Somun M8", None])
            row = ["S-1", "Acme", name, "adet", self._random_cell(rng)]
            products = normalize([HEADER, row], "r.xlsx")
            ok = len(clean_text(name)) > 2 and parse_number(row[4]) > 0
            assert len(products) == (1 if ok else 0)

    def test_lowest_price_is_min_positive_tier_or_list_price(self):
        rng = random.Random(7)
        for _ in range(300):
            list_price = rng.uniform(1, 1000)
            tiers = [self._random_cell(rng) for _ in range(3)]
            (p,) = normalize([HEADER, ["S-1", "Acme", "Somun M8", "adet", list_price, *tiers]], "r.xlsx")
            positive = [parse_number(t) for t in tiers if parse_number(t) > 0]
            expected = min(positive) if positive else list_price
            assert p.lowest_price == pytest.approx(expected)
            assert p.lowest_price > 0


class TestReadSheet:
    def test_xlsx(self, xlsx_bytes):
        rows = read_sheet(xlsx_bytes, "acme.xlsx")
        assert rows[0][0] == "STOK KODU"
        assert rows[1][:3] == ["A-100", "Acme", "Somun M8"]

    def test_xlsx_first_sheet_only(self):
        from io import BytesIO

        from openpyxl import Workbook

        wb = Workbook()
        wb.active.append(["first"])
        wb.create_sheet("Other").append(["second"])
        buf = BytesIO()
        wb.save(buf)
        assert read_sheet(buf.getvalue(), "two.xlsx") == [["first"]]

    def test_csv_semicolon(self):
        data = "STOK KODU;FİRMA;ÜRÜN ADI;BİRİM;LİSTE FİYATI\nC-1;Acme;Somun M8;adet;12,50\n".encode("utf-8-sig")
        rows = read_sheet(data, "liste.csv")
        assert rows[1] == ["C-1", "Acme", "Somun M8", "adet", "12,50"]

    def test_csv_cp1254(self):
        data = "kod,firma,ad,birim,fiyat\nC-1,Acme,Çivi 5cm,kutu,3.5\n".encode("cp1254")
        rows = read_sheet(data, "liste.csv")
        assert rows[1][2] == "Çivi 5cm"

    def test_corrupt_xlsx(self):
        with pytest.raises(ParseError) as exc:
            read_sheet(b"this is not a workbook", "broken.xlsx")
        assert exc.value.filename == "broken.xlsx"

    def test_binary_csv(self):
        with pytest.raises(ParseError):
            read_sheet(b"\x00\x01\x02", "binary.csv")

    def test_legacy_xls(self):
        with pytest.raises(ParseError, match=".xls"):
            read_sheet(b"\xd0\xcf\x11\xe0", "old.xls")

    def test_unknown_extension(self):
        with pytest.raises(ParseError, match="unsupported"):
            read_sheet(b"hello", "notes.txt")


class TestParseUpload:
    def test_xlsx_end_to_end(self, xlsx_bytes):
        products = parse_upload(xlsx_bytes, "acme.xlsx")
        assert [p.stock_code for p in products] == ["A-100", "A-101", "A-102"]
        assert all(p.source_file == "acme.xlsx" for p in products)
        assert products[2].company == "acme"

    def test_csv_end_to_end(self):
        data = "kod;firma;ad;birim;liste;%5;%10;%15;kdv\nC-1;Acme;Somun M8;adet;12,50;12;11,5;;20\n".encode()
        (p,) = parse_upload(data, "acme.csv")
        assert p.lowest_price == pytest.approx(11.5)
        assert p.vat_rate == 20

    def test_xlsx_with_numeric_stock_codes(self):
        data = make_xlsx([HEADER, [1001, "Acme", "Somun M8", "adet", 10]])
        (p,) = parse_upload(data, "num.xlsx")
        assert p.stock_code == "1001"
