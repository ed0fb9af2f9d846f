from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
import threading
from typing import Callable, Iterable, Sequence

from depo.errors import CapacityExceeded, DuplicateUpload, ParseError
from depo.excel_import import ColumnLayout, parse_upload
from depo.products import Product, UploadedFile

logger = logging.getLogger(__name__)

MAX_UPLOADED_FILES = 30
SEARCH_LIMIT = 10

Parser = Callable[[bytes, str], list[Product]]


@dataclass(frozen=True)
class UploadOutcome:
    filename: str
    ok: bool
    product_count: int = 0
    error: str | None = None
    # "parse", "duplicate" or "capacity"
    error_kind: str | None = None

    def as_dict(self) -> dict:
        return {
            "filename": self.filename,
            "ok": self.ok,
            "product_count": self.product_count,
            "error": self.error,
            "error_kind": self.error_kind,
        }


@dataclass(frozen=True)
class BatchResult:
    ok: bool
    outcomes: list[UploadOutcome] = field(default_factory=list)
    error: str | None = None

    @property
    def accepted(self) -> list[UploadOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def rejected(self) -> list[UploadOutcome]:
        return [o for o in self.outcomes if not o.ok]


class Catalog:
    """In-memory supplier catalog, partitioned by upload filename.

    Uploads are only ever appended or removed as whole files. Each mutation
    replaces the held tuples under a lock, so readers always see a consistent
    snapshot and a file's products are either all present or all absent.
    """

    def __init__(
        self,
        *,
        max_files: int = MAX_UPLOADED_FILES,
        search_limit: int = SEARCH_LIMIT,
        layout: ColumnLayout | None = None,
        parser: Parser | None = None,
    ):
        self.max_files = int(max_files)
        self.search_limit = int(search_limit)
        self._parser: Parser = parser or (lambda data, name: parse_upload(data, name, layout))
        self._lock = threading.Lock()
        self._uploads: tuple[UploadedFile, ...] = ()
        self._products: tuple[Product, ...] = ()

    # --- Read side ---
    @property
    def uploaded_files(self) -> tuple[UploadedFile, ...]:
        return self._uploads

    @property
    def products(self) -> tuple[Product, ...]:
        return self._products

    @property
    def file_names(self) -> list[str]:
        return [u.name for u in self._uploads]

    def get(self, name: str) -> UploadedFile | None:
        return next((u for u in self._uploads if u.name == name), None)

    def find(self, source_file: str, stock_code: str) -> Product | None:
        # Stock codes repeat across suppliers, so lookups are per upload.
        uploaded = self.get(source_file)
        if uploaded is None:
            return None
        return next((p for p in uploaded.products if p.stock_code == stock_code), None)

    def __len__(self) -> int:
        return len(self._products)

    def search(self, term: str | int | None, limit: int | None = None) -> list[Product]:
        # Stock codes arrive as JSON numbers from some clients.
        q = str(term if term is not None else "").strip().casefold()
        if not q:
            return []
        hits = [
            p
            for p in self._products
            if q in p.product_name.casefold() or q in p.stock_code.casefold()
        ]
        logger.debug("Search %r matched %s of %s products", term, len(hits), len(self._products))
        # sorted() is stable: equal prices keep upload order.
        hits = sorted(hits, key=lambda p: p.lowest_price)
        if limit is None:
            limit = self.search_limit
        limit = max(1, min(int(limit), self.search_limit))
        return hits[:limit]

    def summary(self) -> dict:
        return {
            "suppliers": len(self._uploads),
            "products": len(self._products),
            "unique_stock_codes": len({p.stock_code for p in self._products}),
            "ready": bool(self._products),
            "max_files": self.max_files,
        }

    # --- Mutations ---
    def _append(self, name: str, products: Iterable[Product]) -> UploadedFile:
        stamped = tuple(p if p.source_file == name else replace(p, source_file=name) for p in products)
        uploaded = UploadedFile(name=name, products=stamped)
        self._uploads = self._uploads + (uploaded,)
        self._products = self._products + stamped
        return uploaded

    def add_upload(self, name: str, products: Iterable[Product]) -> UploadedFile:
        with self._lock:
            if any(u.name == name for u in self._uploads):
                raise DuplicateUpload(name)
            if len(self._uploads) + 1 > self.max_files:
                raise CapacityExceeded(len(self._uploads), 1, self.max_files)
            return self._append(name, products)

    def remove(self, name: str) -> int:
        """Drop an upload and exactly the products whose source file is ``name``."""
        with self._lock:
            before = len(self._products)
            self._uploads = tuple(u for u in self._uploads if u.name != name)
            self._products = tuple(p for p in self._products if p.source_file != name)
            removed = before - len(self._products)
        logger.info("Removed %s (%s products)", name, removed)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._uploads = ()
            self._products = ()

    def upload_batch(self, files: Sequence[tuple[str, bytes]]) -> BatchResult:
        """Parse and admit a batch of uploads one file at a time.

        The whole batch is refused when it would push the catalog past
        ``max_files``. Otherwise every file gets its own outcome: a duplicate
        name or an unreadable file is reported and the rest of the batch goes on.
        """
        with self._lock:
            held = len(self._uploads)
            if held + len(files) > self.max_files:
                err = CapacityExceeded(held, len(files), self.max_files)
                logger.warning("Rejected batch of %s files: %s", len(files), err)
                return BatchResult(
                    ok=False,
                    error=str(err),
                    outcomes=[
                        UploadOutcome(filename=name, ok=False, error=str(err), error_kind="capacity")
                        for name, _data in files
                    ],
                )

            outcomes: list[UploadOutcome] = []
            for name, data in files:
                if any(u.name == name for u in self._uploads):
                    err = DuplicateUpload(name)
                    logger.warning("%s", err)
                    outcomes.append(UploadOutcome(filename=name, ok=False, error=str(err), error_kind="duplicate"))
                    continue

                try:
                    products = self._parser(data, name)
                except ParseError as e:
                    logger.warning("Could not parse %s: %s", name, e.reason)
                    outcomes.append(UploadOutcome(filename=name, ok=False, error=str(e), error_kind="parse"))
                    continue
                except Exception as e:
                    logger.exception("Unexpected error processing %s", name)
                    outcomes.append(
                        UploadOutcome(filename=name, ok=False, error=f"{name}: {e}", error_kind="parse")
                    )
                    continue

                uploaded = self._append(name, products)
                outcomes.append(UploadOutcome(filename=name, ok=True, product_count=len(uploaded.products)))
                logger.info("%s processed, %s products found", name, len(uploaded.products))

            return BatchResult(ok=True, outcomes=outcomes)
