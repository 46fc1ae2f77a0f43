"""Tests for schema migrations."""

from sqlalchemy import create_engine, inspect, text

from bizledger.database.migrations import LATEST_VERSION, MIGRATIONS, column_exists, migrate


def test_fresh_database_is_current(temp_db):
    """A new store is migrated to the latest version on creation."""
    assert temp_db.get_schema_version() == LATEST_VERSION


def test_migrate_is_idempotent(tmp_path):
    """Running migrations twice changes nothing."""
    engine = create_engine(f"sqlite:///{tmp_path / 'm.db'}")
    assert migrate(engine) == LATEST_VERSION
    assert migrate(engine) == LATEST_VERSION

    tables = set(inspect(engine).get_table_names())
    assert {"accounts", "transactions", "ledger_entries", "payments", "outbox", "schema_version"} <= tables


def test_partial_migration_resumes(tmp_path):
    """Only steps newer than the recorded version run."""
    engine = create_engine(f"sqlite:///{tmp_path / 'm.db'}")
    assert migrate(engine, MIGRATIONS[:2]) == 2

    tables = set(inspect(engine).get_table_names())
    assert "ledger_entries" in tables
    assert "payments" not in tables

    assert migrate(engine) == LATEST_VERSION
    assert "payments" in set(inspect(engine).get_table_names())


def test_add_column_steps_upgrade_old_schema(tmp_path):
    """Columns added in later steps appear on tables from an older release."""
    engine = create_engine(f"sqlite:///{tmp_path / 'old.db'}")
    with engine.begin() as connection:
        connection.execute(text(
            "CREATE TABLE transactions ("
            "id INTEGER PRIMARY KEY, client_id VARCHAR NOT NULL UNIQUE, account_id VARCHAR NOT NULL, "
            "type VARCHAR NOT NULL, line_items JSON NOT NULL, tax_percent NUMERIC(5, 2) NOT NULL, "
            "total NUMERIC(12, 2) NOT NULL, amount_paid NUMERIC(12, 2) NOT NULL, "
            "balance_due NUMERIC(12, 2) NOT NULL, status VARCHAR NOT NULL, due_date DATE, "
            "notes VARCHAR NOT NULL, synced BOOLEAN NOT NULL, "
            "created_at DATETIME NOT NULL, updated_at DATETIME NOT NULL)"
        ))

    migrate(engine)

    with engine.connect() as connection:
        assert column_exists(connection, "transactions", "notified")
        assert column_exists(connection, "transactions", "revision")
