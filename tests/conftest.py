"""Shared pytest fixtures for bizledger tests."""

import logging
import os
import tempfile
from decimal import Decimal

import pytest

from bizledger.config import SyncConfig
from bizledger.database.factories import create_sqlite_database
from bizledger.domain.account import AccountService
from bizledger.domain.entities import LineItem
from bizledger.domain.ledger_service import LedgerService
from bizledger.domain.payment import PaymentService
from bizledger.domain.transaction import TransactionService
from bizledger.sync.engine import SyncEngine
from bizledger.sync.outbox import Outbox
from bizledger.sync.reconciler import Reconciler
from bizledger.sync.scheduler import QueueScheduler
from bizledger.sync.transport import InProcessTransport
from bizledger.utils.log_setup import HANDLER_NAME


def _make_db():
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()
    return db


def _drop_db(db):
    db.disconnect()
    if os.path.exists(db.database_path):
        os.unlink(db.database_path)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing (the device's local store)."""
    db = _make_db()
    yield db
    _drop_db(db)


@pytest.fixture
def server_db():
    """Create a temporary database acting as the remote store."""
    db = _make_db()
    yield db
    _drop_db(db)


@pytest.fixture(autouse=True)
def reset_bizledger_logging():
    """Drop handlers the CLI installs so they don't outlive the test's streams."""
    yield
    logger = logging.getLogger("bizledger")
    for handler in list(logger.handlers):
        if handler.get_name() == HANDLER_NAME:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def outbox(temp_db):
    """Outbox shared by the services and the sync engine."""
    return Outbox(temp_db)


@pytest.fixture
def account_service(temp_db, outbox):
    """Create an AccountService with a temporary database."""
    return AccountService(temp_db, outbox)


@pytest.fixture
def transaction_service(temp_db, outbox):
    """Create a TransactionService with a temporary database."""
    return TransactionService(temp_db, outbox)


@pytest.fixture
def payment_service(temp_db, outbox):
    """Create a PaymentService with a temporary database."""
    return PaymentService(temp_db, outbox)


@pytest.fixture
def ledger_service(temp_db, outbox):
    """Create a LedgerService with a temporary database."""
    return LedgerService(temp_db, outbox)


@pytest.fixture
def sample_account(account_service):
    """Create a sample customer account for testing."""
    return account_service.create_account(name="Test Customer", phone="9876543210")


@pytest.fixture
def rice():
    """A single line item worth 1000.00."""
    return [LineItem(name="Rice", quantity=Decimal("10"), unit_price=Decimal("100.00"))]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return QueueScheduler(clock=clock)


@pytest.fixture
def reconciler(server_db):
    return Reconciler(server_db)


@pytest.fixture
def sync_config():
    return SyncConfig(max_attempts=3, base_delay=2.0, debounce_seconds=0.3)


@pytest.fixture
def engine(temp_db, reconciler, outbox, scheduler, sync_config):
    """Sync engine of the device, talking in-process to the server store."""
    return SyncEngine(
        temp_db,
        InProcessTransport(reconciler),
        sync_config,
        outbox=outbox,
        scheduler=scheduler,
    )


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
