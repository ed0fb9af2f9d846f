from __future__ import annotations

import argparse
import logging
from pathlib import Path

from depo.catalog import Catalog
from depo.excel_import import LAYOUTS, get_layout
from depo.formatting import format_price
from depo.pricing import load_rate_table
from depo.services import CalculatorService
from depo.settings import Settings

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    settings = Settings()

    parser = argparse.ArgumentParser(description="Load supplier price lists, search them and price products")
    parser.add_argument("files", nargs="+", type=Path, help="Supplier price lists (.xlsx or .csv)")
    parser.add_argument("--search", "-s", default="", help="Search by product name or stock code")
    parser.add_argument("--margin", type=float, default=settings.DEFAULT_MARGIN_PERCENT, help="Profit margin (%% of sale price)")
    parser.add_argument("--discount", type=float, default=0.0, help="Extra discount on cost (%%)")
    parser.add_argument("--currency", default=settings.BASE_CURRENCY, help="Target currency (TRY, USD, EUR, GBP)")
    parser.add_argument(
        "--layout",
        choices=sorted(LAYOUTS),
        default=settings.COLUMN_LAYOUT,
        help="Column layout of the supplier sheets",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log skipped rows")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)-8s %(name)s: %(message)s",
    )

    catalog = Catalog(
        max_files=settings.MAX_UPLOADED_FILES,
        search_limit=settings.SEARCH_LIMIT,
        layout=get_layout(args.layout),
    )

    batch_files: list[tuple[str, bytes]] = []
    for p in args.files:
        try:
            batch_files.append((p.name, p.read_bytes()))
        except OSError as e:
            print(f"ERROR {p}: {e}")

    batch = catalog.upload_batch(batch_files)
    if not batch.ok:
        print(f"ERROR {batch.error}")
        return 2

    for o in batch.outcomes:
        if o.ok:
            print(f"OK    {o.filename}: {o.product_count} products")
        else:
            print(f"ERROR {o.error}")

    summary = catalog.summary()
    print(
        f"{summary['suppliers']} suppliers, {summary['products']} products, "
        f"{summary['unique_stock_codes']} unique stock codes"
    )

    if not args.search:
        return 0 if batch.accepted else 1

    rates = load_rate_table(settings.rates_path, base=settings.BASE_CURRENCY)
    service = CalculatorService(rates=rates)
    results = catalog.search(args.search)
    if not results:
        print(f"No products match {args.search!r}")
        return 0

    for product in results:
        res = service.calculate(product, args.margin, args.discount, args.currency)
        if not res.ok or res.quote is None:
            print(f"ERROR {res.error}")
            return 2
        q = res.quote
        print(
            f"{product.stock_code:<16} {product.product_name[:40]:<40} {product.source_file:<24} "
            f"cost {format_price(q.cost_price, q.currency):>14}  "
            f"profit {format_price(q.profit_amount, q.currency):>14}  "
            f"sale {format_price(q.selling_price, q.currency):>14}"
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
