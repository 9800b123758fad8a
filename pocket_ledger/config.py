"""Runtime settings read from the environment."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_DB_FILE = Path.home() / ".pocket_ledger" / "ledger.db"


def database_url(value: str | os.PathLike | None) -> str:
    """Turn a file path or SQLAlchemy URL into a SQLAlchemy URL."""
    if value is None:
        return f"sqlite:///{DEFAULT_DB_FILE}"
    value = str(value)
    if "://" in value:
        return value
    return f"sqlite:///{Path(value).expanduser()}"


@dataclass
class Settings:
    database_url: str
    log_level: int = logging.WARNING
    log_file: Path | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        # POCKET_LEDGER_DB may be a plain path or a full SQLAlchemy URL
        level_name = os.getenv("POCKET_LEDGER_LOG_LEVEL", "WARNING").upper()
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            level = logging.WARNING
        log_file = os.getenv("POCKET_LEDGER_LOG_FILE")
        return cls(
            database_url=database_url(os.getenv("POCKET_LEDGER_DB")),
            log_level=level,
            log_file=Path(log_file) if log_file else None,
        )
