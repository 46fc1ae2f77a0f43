"""SQLAlchemy models for bizledger database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Date,
    Numeric,
    Boolean,
    JSON,
    Index,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session

Base = declarative_base()


def _now() -> datetime:
    return datetime.now(UTC)


class Account(Base):
    """Customer or supplier account model."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    client_id = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    phone = Column(String, default="", nullable=False)
    address = Column(String, default="", nullable=False)
    kind = Column(String, default="customer", nullable=False)
    balance = Column(Numeric(12, 2), default=0, nullable=False)
    status = Column(String, default="active", nullable=False)
    server_id = Column(Integer, nullable=True)
    synced = Column(Boolean, default=False, nullable=False, index=True)
    revision = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, nullable=False)


class Transaction(Base):
    """Sale or purchase (invoice) model. Line items are stored as JSON."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    client_id = Column(String, unique=True, nullable=False, index=True)
    account_id = Column(String, nullable=False, index=True)
    type = Column(String, default="sale", nullable=False)
    line_items = Column(JSON, nullable=False)
    tax_percent = Column(Numeric(5, 2), default=0, nullable=False)
    total = Column(Numeric(12, 2), nullable=False)
    amount_paid = Column(Numeric(12, 2), default=0, nullable=False)
    balance_due = Column(Numeric(12, 2), nullable=False)
    status = Column(String, default="pending", nullable=False)
    due_date = Column(Date, nullable=True)
    notes = Column(String, default="", nullable=False)
    synced = Column(Boolean, default=False, nullable=False, index=True)
    notified = Column(Boolean, default=False, nullable=False)
    revision = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, nullable=False)


class LedgerEntry(Base):
    """Append-only ledger entry model."""

    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True)
    client_id = Column(String, unique=True, nullable=False, index=True)
    account_id = Column(String, nullable=False)
    direction = Column(String, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    source = Column(String, nullable=False)
    transaction_id = Column(String, nullable=True)
    payment_id = Column(String, nullable=True)
    description = Column(String, default="", nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)
    synced = Column(Boolean, default=False, nullable=False, index=True)

    __table_args__ = (Index("ix_ledger_entries_account_id", "account_id"),)


class Payment(Base):
    """Payment model."""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    client_id = Column(String, unique=True, nullable=False, index=True)
    account_id = Column(String, nullable=False, index=True)
    transaction_id = Column(String, nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    method = Column(String, default="cash", nullable=False)
    date = Column(Date, nullable=False)
    note = Column(String, default="", nullable=False)
    synced = Column(Boolean, default=False, nullable=False, index=True)
    created_at = Column(DateTime, default=_now, nullable=False)


class OutboxItem(Base):
    """Outbox (sync queue) item model."""

    __tablename__ = "outbox"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_class = Column(String, nullable=False)
    client_id = Column(String, nullable=False)
    action = Column(String, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)


class SchemaVersion(Base):
    """Single-row table holding the applied migration version."""

    __tablename__ = "schema_version"

    id = Column(Integer, primary_key=True)
    version = Column(Integer, nullable=False, default=0)


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINT nests inside it.

    pysqlite otherwise defers BEGIN until the first DML statement, and a
    SAVEPOINT issued before that opens (and on release commits) the
    transaction on its own.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(connection):
        connection.exec_driver_sql("BEGIN")


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory with an up-to-date schema."""
    # Imported here: migrations needs the model classes defined above
    from bizledger.database.migrations import migrate

    engine = create_engine(database_url, echo=False)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_savepoints(engine)
    migrate(engine)
    return sessionmaker(bind=engine)
