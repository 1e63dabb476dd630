"""
Shared database utilities — consistent SQLite connection management.

All connections use WAL mode for concurrent read access and a 5-second
busy timeout to prevent SQLITE_BUSY errors under async load.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Union

import config

logger = logging.getLogger(__name__)

# WAL mode is persistent per-database, so it is set once per path.
_wal_initialized: set[str] = set()


def _resolve(path: Optional[Union[str, Path]]) -> str:
    return str(path if path is not None else config.DB_PATH)


def _configure_connection(conn: sqlite3.Connection, path: str):
    """Apply standard connection settings: WAL mode, busy timeout, foreign keys."""
    conn.execute("PRAGMA busy_timeout = 5000")
    conn.execute("PRAGMA foreign_keys = ON")
    if path not in _wal_initialized:
        conn.execute("PRAGMA journal_mode = WAL")
        _wal_initialized.add(path)


@contextmanager
def db_connection(path: Optional[Union[str, Path]] = None):
    """Context manager for SQLite connections — ensures close on exit.
    Rows come back as sqlite3.Row."""
    resolved = _resolve(path)
    conn = sqlite3.connect(resolved)
    conn.row_factory = sqlite3.Row
    _configure_connection(conn, resolved)
    try:
        yield conn
    finally:
        conn.close()
