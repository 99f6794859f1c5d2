"""
Database connection management.
"""
import sqlite3
import logging
from pathlib import Path
from typing import Optional

from .schema import init_schema

class DBManager:
    def __init__(self, db_path: Path, read_only: bool = False):
        self.db_path = db_path
        self.read_only = read_only
        self._conn: Optional[sqlite3.Connection] = None

    def connect(self) -> sqlite3.Connection:
        """
        Connects to the SQLite database and configures pragmas.

        In read-only mode nothing is created on disk: an existing database is
        opened with mode=ro, a missing one is replaced by an empty in-memory catalog.
        """
        if self._conn:
            return self._conn

        if self.read_only:
            return self._connect_read_only()

        logging.info(f"Connecting to database: {self.db_path}")
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self.db_path)

        # Every metadata write is committed on its own, keep them durable
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=FULL;")

        # Ensure schema exists
        init_schema(self._conn)

        return self._conn

    def _connect_read_only(self) -> sqlite3.Connection:
        if self.db_path.exists():
            logging.info(f"Opening database read-only: {self.db_path}")
            self._conn = sqlite3.connect(f"{self.db_path.resolve().as_uri()}?mode=ro", uri=True)
        else:
            logging.info(f"No database at {self.db_path}; using an empty in-memory catalog.")
            self._conn = sqlite3.connect(":memory:")
            init_schema(self._conn)
        return self._conn

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
