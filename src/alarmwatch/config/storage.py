"""Database location for the scanner."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

DATABASE_FILENAME: Final[str] = "alarmwatch.db"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    # set only for the default SQLite file; None when DATABASE_URI points elsewhere
    path: Path | None = None


def data_dir() -> Path:
    """``ALARMWATCH_DATA_DIR`` if set, else ``$XDG_DATA_HOME/alarmwatch``."""

    override = os.getenv("ALARMWATCH_DATA_DIR")
    if override and override.strip():
        return Path(override.strip()).expanduser().resolve()
    xdg = os.getenv("XDG_DATA_HOME")
    base = Path(xdg) if xdg else Path.home() / ".local" / "share"
    return (base / "alarmwatch").expanduser().resolve()


def get_database_config() -> DatabaseConfig:
    uri = os.getenv("DATABASE_URI")
    if uri and uri.strip():
        return DatabaseConfig(uri=uri.strip())

    target = data_dir()
    target.mkdir(parents=True, exist_ok=True)
    path = target / DATABASE_FILENAME
    return DatabaseConfig(uri=f"sqlite+pysqlite:///{path}", path=path)
