import sqlite3

import pytest

from src.adapters.sqlite.migrator import SQLiteMigrator


@pytest.fixture
def temp_db_path(tmp_path):
    return str(tmp_path / "test_db.sqlite")


def _tables(db_path: str) -> set[str]:
    conn = sqlite3.connect(db_path)
    try:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    finally:
        conn.close()
    return {r[0] for r in rows}


def test_migrator_creates_migration_table(temp_db_path):
    SQLiteMigrator(temp_db_path).run_migrations()
    assert "_migrations" in _tables(temp_db_path)


def test_migrator_applies_packaged_migrations(temp_db_path):
    applied = SQLiteMigrator(temp_db_path).run_migrations()

    assert applied == ["001_progress_events.sql", "002_settlements.sql"]
    tables = _tables(temp_db_path)
    assert {"progress_events", "settlement_results", "settlement_leases"} <= tables


def test_migrator_is_idempotent(temp_db_path):
    migrator = SQLiteMigrator(temp_db_path)

    # Run twice
    migrator.run_migrations()
    assert migrator.run_migrations() == []

    conn = sqlite3.connect(temp_db_path)
    cursor = conn.execute("SELECT count(*) FROM _migrations")
    assert cursor.fetchone()[0] == 2
    conn.close()


def test_down_section_not_applied(tmp_path, temp_db_path):
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    (migrations / "001_demo.sql").write_text(
        "-- Up\nCREATE TABLE demo (id INTEGER);\n-- Down\nDROP TABLE demo;\n"
    )
    SQLiteMigrator(temp_db_path, str(migrations)).run_migrations()
    assert "demo" in _tables(temp_db_path)


def test_failed_migration_raises(tmp_path, temp_db_path):
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    (migrations / "001_broken.sql").write_text("CREATE TABLE (;\n")
    with pytest.raises(RuntimeError, match="001_broken.sql"):
        SQLiteMigrator(temp_db_path, str(migrations)).run_migrations()
