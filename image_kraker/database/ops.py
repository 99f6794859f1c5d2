import sqlite3
import logging
from datetime import datetime, UTC
from typing import Optional

from ..exceptions import DatabaseError

class DBOperations:
    """Key-value access to the persisted kraken metadata blobs."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def read_metadata(self, record_id: str) -> Optional[str]:
        """Returns the stored blob for a record, or None if nothing was stored yet."""
        cur = self.conn.cursor()
        cur.execute("SELECT metadata FROM kraken_metadata WHERE record_id = ?", (record_id,))
        row = cur.fetchone()
        return row[0] if row else None

    def write_metadata(self, record_id: str, blob: str):
        """
        Replaces the blob of a record and commits right away.
        Raises DatabaseError if the write cannot be made durable.
        """
        now_iso = datetime.now(UTC).isoformat()
        try:
            with self.conn:
                self.conn.execute("""
                    INSERT INTO kraken_metadata (record_id, metadata, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(record_id) DO UPDATE SET
                        metadata = excluded.metadata,
                        updated_at = excluded.updated_at
                """, (record_id, blob, now_iso))
        except sqlite3.Error as e:
            logging.error(f"Failed to write metadata for {record_id}: {e}")
            raise DatabaseError(f"Failed to write metadata for {record_id}: {e}") from e

    def count_records(self) -> int:
        cur = self.conn.cursor()
        cur.execute("SELECT COUNT(*) FROM kraken_metadata")
        return cur.fetchone()[0]
