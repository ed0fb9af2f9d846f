from __future__ import annotations


class CatalogError(Exception):
    """Base class for upload and pricing failures reported to the caller."""


class ParseError(CatalogError):
    """The uploaded bytes could not be decoded as a spreadsheet."""

    def __init__(self, filename: str, reason: str):
        super().__init__(f"{filename}: {reason}")
        self.filename = filename
        self.reason = reason


class DuplicateUpload(CatalogError):
    def __init__(self, filename: str):
        super().__init__(f"{filename} is already uploaded")
        self.filename = filename


class CapacityExceeded(CatalogError):
    def __init__(self, held: int, incoming: int, limit: int):
        super().__init__(f"At most {limit} files can be uploaded ({held} held, {incoming} incoming)")
        self.held = held
        self.incoming = incoming
        self.limit = limit


class InvalidMargin(CatalogError, ValueError):
    def __init__(self, margin_percent: float):
        super().__init__(f"Margin must be below 100%, got {margin_percent}")
        self.margin_percent = margin_percent
