"""Tests for the SQLite key/value store."""

from melodify.core.database import (
    SCHEMA_VERSION,
    delete_value,
    get_database_path,
    get_db_connection,
    read_value,
    write_value,
)


def test_uses_overridden_path(temp_db):
    assert get_database_path() == temp_db
    assert temp_db.exists()


def test_schema_version_recorded(temp_db):
    with get_db_connection() as conn:
        versions = [row["version"] for row in conn.execute("SELECT version FROM schema_version")]
    assert versions == [SCHEMA_VERSION]


def test_read_missing_key(temp_db):
    assert read_value("nothing") is None


def test_write_then_overwrite(temp_db):
    write_value("k", "first")
    write_value("k", "second")

    assert read_value("k") == "second"
    with get_db_connection() as conn:
        count = conn.execute("SELECT COUNT(*) FROM kv_store").fetchone()[0]
    assert count == 1


def test_delete_value(temp_db):
    write_value("k", "v")
    delete_value("k")
    delete_value("k")
    assert read_value("k") is None
