"""
Database schema definitions.
"""
import sqlite3
import logging

CURRENT_SCHEMA_VERSION = 1

def init_schema(conn: sqlite3.Connection):
    """
    Applies the core schema to the database.
    Idempotent: safe to run on every startup.
    """
    with conn:
        # 1. Version Tracking (For future migrations)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            );
        """)

        cur = conn.cursor()
        cur.execute("SELECT version FROM schema_version")
        if not cur.fetchone():
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (CURRENT_SCHEMA_VERSION,))

        # 2. Kraken metadata, one JSON blob per record:
        #    {basename: {"hash": str|null, "mtime": int|null}}
        conn.execute("""
        CREATE TABLE IF NOT EXISTS kraken_metadata (
            record_id       TEXT PRIMARY KEY,
            metadata        TEXT NOT NULL,
            updated_at      TEXT NOT NULL
        );
        """)

    logging.debug("Database schema initialized.")
