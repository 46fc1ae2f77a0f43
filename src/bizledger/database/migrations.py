"""Ordered schema migrations applied at store initialization.

Each step is idempotent: it checks what already exists before changing the
schema, so re-running a step against a database that has it is harmless. The
highest applied step is stored in the ``schema_version`` table and only newer
steps run.

Databases created by older releases lack the later tables and columns; fresh
databases get the tables in their final shape from the ``create`` steps and
the ``add column`` steps are no-ops for them.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Sequence

from sqlalchemy import inspect, select, text
from sqlalchemy.engine import Connection, Engine

from bizledger.database.models import Base, SchemaVersion

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    """One schema step."""

    version: int
    description: str
    apply: Callable[[Connection], None]


def column_exists(connection: Connection, table_name: str, column_name: str) -> bool:
    """Check if a column exists in a table.

    Args:
        connection: SQLAlchemy connection
        table_name: Name of the table
        column_name: Name of the column

    Returns:
        True if column exists, False otherwise
    """
    inspector = inspect(connection)
    columns = [col["name"] for col in inspector.get_columns(table_name)]
    return column_name in columns


def _create_tables(*table_names: str) -> Callable[[Connection], None]:
    def step(connection: Connection) -> None:
        tables = [Base.metadata.tables[name] for name in table_names]
        Base.metadata.create_all(connection, tables=tables, checkfirst=True)

    return step


def _add_columns(table_name: str, columns: dict[str, str]) -> Callable[[Connection], None]:
    def step(connection: Connection) -> None:
        for column_name, ddl in columns.items():
            if column_exists(connection, table_name, column_name):
                continue
            connection.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {column_name} {ddl}"))

    return step


def _add_revision_columns(connection: Connection) -> None:
    for table_name in ("accounts", "transactions"):
        _add_columns(table_name, {"revision": "INTEGER NOT NULL DEFAULT 1"})(connection)


MIGRATIONS: tuple[Migration, ...] = (
    Migration(1, "Create accounts, transactions and outbox tables",
              _create_tables("accounts", "transactions", "outbox")),
    Migration(2, "Create ledger_entries table", _create_tables("ledger_entries")),
    Migration(3, "Create payments table", _create_tables("payments")),
    Migration(4, "Add notified flag to transactions",
              _add_columns("transactions", {"notified": "BOOLEAN NOT NULL DEFAULT FALSE"})),
    Migration(5, "Add revision counters to accounts and transactions", _add_revision_columns),
)

LATEST_VERSION = MIGRATIONS[-1].version


def get_schema_version(connection: Connection) -> int:
    """Return the applied schema version, 0 for an empty database."""
    SchemaVersion.__table__.create(connection, checkfirst=True)
    version = connection.execute(
        select(SchemaVersion.version).where(SchemaVersion.id == 1)
    ).scalar()
    return version or 0


def _set_schema_version(connection: Connection, version: int) -> None:
    table = SchemaVersion.__table__
    updated = connection.execute(
        table.update().where(table.c.id == 1).values(version=version)
    ).rowcount
    if not updated:
        connection.execute(table.insert().values(id=1, version=version))


def migrate(engine: Engine, migrations: Sequence[Migration] = MIGRATIONS) -> int:
    """Apply pending migrations in version order.

    Each step runs in its own transaction together with the version bump.

    Returns:
        The schema version after migrating
    """
    with engine.begin() as connection:
        current = get_schema_version(connection)

    for migration in sorted(migrations, key=lambda m: m.version):
        if migration.version <= current:
            continue
        with engine.begin() as connection:
            logger.info("Applying migration %d: %s", migration.version, migration.description)
            migration.apply(connection)
            _set_schema_version(connection, migration.version)
        current = migration.version

    return current
