from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    # App
    APP_NAME: str = os.environ.get("APP_NAME", "Depo Hesaplayici")

    # Storage
    INSTANCE_DIR: Path = Path(os.environ.get("INSTANCE_DIR", "instance")).resolve()
    DATABASE_URL: str = os.environ.get(
        "DATABASE_URL", f"sqlite:///{(Path('instance') / 'depo.sqlite').as_posix()}"
    )

    # Uploads
    MAX_UPLOADED_FILES: int = int(os.environ.get("MAX_UPLOADED_FILES", "30"))
    # Which column layout supplier sheets follow (see depo.excel_import.LAYOUTS).
    COLUMN_LAYOUT: str = os.environ.get("COLUMN_LAYOUT", "current")

    # Search
    SEARCH_LIMIT: int = int(os.environ.get("SEARCH_LIMIT", "10"))

    # Pricing
    BASE_CURRENCY: str = os.environ.get("BASE_CURRENCY", "TRY")
    DEFAULT_MARGIN_PERCENT: float = float(os.environ.get("DEFAULT_MARGIN_PERCENT", "20"))
    # JSON object {"USD": 0.031, ...}; relative paths live inside INSTANCE_DIR.
    RATES_FILE: str = os.environ.get("RATES_FILE", "rates.json")

    def __post_init__(self) -> None:
        db_url_env_set = os.environ.get("DATABASE_URL") is not None

        object.__setattr__(self, "INSTANCE_DIR", Path(self.INSTANCE_DIR).resolve())
        object.__setattr__(self, "BASE_CURRENCY", (self.BASE_CURRENCY or "TRY").strip().upper())

        if not db_url_env_set:
            abs_db = (self.INSTANCE_DIR / "depo.sqlite").resolve()
            object.__setattr__(self, "DATABASE_URL", f"sqlite:///{abs_db.as_posix()}")
            return

        db = str(self.DATABASE_URL or "").strip()
        if not db:
            abs_db = (self.INSTANCE_DIR / "depo.sqlite").resolve()
            object.__setattr__(self, "DATABASE_URL", f"sqlite:///{abs_db.as_posix()}")
            return

        # Make relative SQLite paths independent of the working directory.
        # Example: sqlite:///instance/depo.sqlite -> sqlite:////abs/project/instance/depo.sqlite
        if db.startswith("sqlite:///") and not db.startswith("sqlite:////") and db != "sqlite:///:memory:":
            path_part = db[len("sqlite:///") :]
            if "?" in path_part:
                path_part = path_part.split("?", 1)[0]

            p = Path(path_part)
            if not p.is_absolute():
                project_root = Path(__file__).resolve().parents[1]
                abs_path = (project_root / p).resolve()
                object.__setattr__(self, "DATABASE_URL", f"sqlite:///{abs_path.as_posix()}")

    @property
    def rates_path(self) -> Path:
        p = Path(self.RATES_FILE)
        if not p.is_absolute():
            p = self.INSTANCE_DIR / p
        return p.resolve()

    def ensure_instance(self) -> None:
        self.INSTANCE_DIR.mkdir(parents=True, exist_ok=True)
