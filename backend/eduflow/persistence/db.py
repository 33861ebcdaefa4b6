"""SQLite connection + schema initialisation."""
from __future__ import annotations
import os
import sqlite3
from typing import Optional

from eduflow.core import config

_MIGRATIONS_DIR = os.path.join(os.path.dirname(__file__), "..", "..", "migrations")


def get_connection(database_path: Optional[str] = None) -> sqlite3.Connection:
    conn = sqlite3.connect(database_path or config.DATABASE_PATH, check_same_thread=False, timeout=10)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def init_db(database_path: Optional[str] = None) -> None:
    """Run all migration SQL files against the database."""
    database_path = database_path or config.DATABASE_PATH
    directory = os.path.dirname(database_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    conn = get_connection(database_path)
    try:
        for filename in sorted(os.listdir(_MIGRATIONS_DIR)):
            if not filename.endswith(".sql"):
                continue
            with open(os.path.join(_MIGRATIONS_DIR, filename), "r", encoding="utf-8") as f:
                conn.executescript(f.read())
        conn.commit()
    finally:
        conn.close()
