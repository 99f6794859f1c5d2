import json
import sqlite3

import pytest

from image_kraker.database.db import DBManager
from image_kraker.database.ops import DBOperations
from image_kraker.database.schema import init_schema
from image_kraker.exceptions import DatabaseError

def test_read_missing_record_returns_none(db_ops):
    assert db_ops.read_metadata("2021/photo.jpg") is None

def test_write_then_read_metadata(db_ops):
    blob = json.dumps({"photo.jpg": {"hash": "abc", "mtime": None}})
    db_ops.write_metadata("2021/photo.jpg", blob)

    assert db_ops.read_metadata("2021/photo.jpg") == blob
    assert db_ops.count_records() == 1

def test_write_overwrites_previous_blob(db_ops):
    db_ops.write_metadata("r1", '{"a.png": {"hash": "1", "mtime": null}}')
    db_ops.write_metadata("r1", '{"a.png": {"hash": "2", "mtime": null}}')

    assert json.loads(db_ops.read_metadata("r1"))["a.png"]["hash"] == "2"
    assert db_ops.count_records() == 1

def test_write_failure_raises_database_error(conn):
    db_ops = DBOperations(conn)
    conn.execute("DROP TABLE kraken_metadata")

    with pytest.raises(DatabaseError):
        db_ops.write_metadata("r1", "{}")

def test_init_schema_is_idempotent():
    c = sqlite3.connect(":memory:")
    init_schema(c)
    init_schema(c)
    cur = c.cursor()
    cur.execute("SELECT COUNT(*) FROM schema_version")
    assert cur.fetchone()[0] == 1
    c.close()

def test_db_manager_persists_across_connections(tmp_path):
    db_path = tmp_path / "meta" / "kraken_metadata.db"

    with DBManager(db_path) as conn:
        DBOperations(conn).write_metadata("r1", '{"a.png": {"hash": "x", "mtime": null}}')

    with DBManager(db_path) as conn:
        assert DBOperations(conn).read_metadata("r1") is not None

def test_read_only_manager_creates_nothing_when_missing(tmp_path):
    db_path = tmp_path / "meta" / "kraken_metadata.db"

    with DBManager(db_path, read_only=True) as conn:
        db_ops = DBOperations(conn)
        assert db_ops.read_metadata("r1") is None
        assert db_ops.count_records() == 0

    assert not (tmp_path / "meta").exists()

def test_read_only_manager_sees_existing_records_without_writing(tmp_path):
    db_path = tmp_path / "kraken_metadata.db"
    with DBManager(db_path) as conn:
        DBOperations(conn).write_metadata("r1", '{"a.png": {"hash": "x", "mtime": null}}')
    content = db_path.read_bytes()

    with DBManager(db_path, read_only=True) as conn:
        db_ops = DBOperations(conn)
        assert db_ops.read_metadata("r1") is not None
        with pytest.raises(DatabaseError):
            db_ops.write_metadata("r2", "{}")

    assert db_path.read_bytes() == content
