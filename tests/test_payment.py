"""Tests for payments."""

import pytest
from datetime import date
from decimal import Decimal

from bizledger.cli.main import cli
from bizledger.domain.entities import (
    Direction,
    EntityClass,
    EntrySource,
    OutboxAction,
    PaymentMethod,
    TransactionStatus,
)
from bizledger.domain.errors import NotFoundError, ValidationError


class TestPaymentService:
    """Tests for PaymentService.record_payment."""

    def test_payment_against_transaction(
        self, payment_service, transaction_service, ledger_service, account_service, sample_account, rice
    ):
        txn = transaction_service.create_transaction(sample_account.client_id, rice)

        payment = payment_service.record_payment(
            sample_account.client_id, Decimal("400"), transaction_id=txn.client_id
        )

        assert payment.method == PaymentMethod.CASH
        assert payment.date == date.today()
        updated = transaction_service.get_transaction(txn.client_id)
        assert updated.amount_paid == Decimal("400.00")
        assert updated.balance_due == Decimal("600.00")
        assert updated.status == TransactionStatus.PARTIAL
        assert account_service.get_account(sample_account.client_id).balance == Decimal("600.00")

        latest = ledger_service.list_entries(sample_account.client_id)[0]
        assert latest.direction == Direction.DEBIT
        assert latest.source == EntrySource.PAYMENT
        assert latest.payment_id == payment.client_id

    def test_payment_settles_transaction(self, payment_service, transaction_service, sample_account, rice):
        txn = transaction_service.create_transaction(sample_account.client_id, rice)
        payment_service.record_payment(sample_account.client_id, Decimal("1000"), transaction_id=txn.client_id)

        updated = transaction_service.get_transaction(txn.client_id)
        assert updated.balance_due == Decimal("0.00")
        assert updated.status == TransactionStatus.PAID

    def test_standalone_payment_can_overpay(self, payment_service, account_service, sample_account):
        payment_service.record_payment(sample_account.client_id, Decimal("50"), method=PaymentMethod.UPI)
        assert account_service.get_account(sample_account.client_id).balance == Decimal("-50.00")

    def test_payment_enqueues_all_effects(self, payment_service, transaction_service, outbox, sample_account, rice):
        txn = transaction_service.create_transaction(sample_account.client_id, rice)
        before = len(outbox)

        payment = payment_service.record_payment(
            sample_account.client_id, Decimal("10"), transaction_id=txn.client_id
        )

        added = [(i.entity_class, i.client_id, i.action) for i in outbox.pending()[before:]]
        assert (EntityClass.PAYMENT, payment.client_id, OutboxAction.CREATE) in added
        assert (EntityClass.TRANSACTION, txn.client_id, OutboxAction.UPDATE) in added
        assert sum(1 for cls, _, _ in added if cls == EntityClass.LEDGER) == 1

    @pytest.mark.parametrize("amount", ["0", "-10"])
    def test_non_positive_amount(self, payment_service, sample_account, amount):
        with pytest.raises(ValidationError):
            payment_service.record_payment(sample_account.client_id, Decimal(amount))

    def test_unknown_account(self, payment_service):
        with pytest.raises(NotFoundError):
            payment_service.record_payment("missing", Decimal("10"))

    def test_unknown_transaction(self, payment_service, sample_account):
        with pytest.raises(NotFoundError):
            payment_service.record_payment(sample_account.client_id, Decimal("10"), transaction_id="missing")

    def test_transaction_of_other_account(self, payment_service, transaction_service, account_service, sample_account, rice):
        other = account_service.create_account(name="Other")
        txn = transaction_service.create_transaction(other.client_id, rice)
        with pytest.raises(ValidationError):
            payment_service.record_payment(sample_account.client_id, Decimal("10"), transaction_id=txn.client_id)

    def test_payment_against_draft_leaves_nothing(
        self, temp_db, payment_service, transaction_service, sample_account, rice
    ):
        draft = transaction_service.create_transaction(sample_account.client_id, rice, draft=True)
        with pytest.raises(ValidationError):
            payment_service.record_payment(sample_account.client_id, Decimal("10"), transaction_id=draft.client_id)
        assert payment_service.list_payments() == []
        assert temp_db.list_ledger_entries(sample_account.client_id) == []


def test_payment_record_command(cli_runner, temp_db, transaction_service, sample_account, rice):
    """Test recording a payment against a transaction from the CLI."""
    txn = transaction_service.create_transaction(sample_account.client_id, rice)

    result = cli_runner.invoke(
        cli,
        [
            "--db-path",
            temp_db.database_path,
            "payment",
            "record",
            "Test Customer",
            "₹1,000",
            "--txn",
            txn.client_id[:8],
            "--method",
            "upi",
        ],
    )

    assert result.exit_code == 0
    assert "Recorded payment of 1,000.00" in result.output
    assert "Balance now 0.00" in result.output
    assert transaction_service.get_transaction(txn.client_id).status == TransactionStatus.PAID


def test_payment_list_command(cli_runner, temp_db, payment_service, sample_account):
    """Test listing payments."""
    payment_service.record_payment(
        sample_account.client_id, Decimal("75"), payment_date=date(2024, 1, 15)
    )

    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "payment", "list"])

    assert result.exit_code == 0
    assert "2024-01-15" in result.output
    assert "75.00" in result.output
