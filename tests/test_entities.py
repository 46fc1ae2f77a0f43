"""Tests for domain entities."""

import pytest
from dataclasses import FrozenInstanceError, replace
from decimal import Decimal

from bizledger.domain.entities import (
    Account,
    DriftReport,
    EntityClass,
    LineItem,
    Transaction,
    TransactionStatus,
)


def test_account_immutability():
    """Test that Account entities are immutable."""
    account = Account(client_id="A1", name="Asha")
    with pytest.raises(FrozenInstanceError):
        account.balance = Decimal("5")
    assert replace(account, name="Bala").name == "Bala"


def test_account_defaults():
    account = Account(client_id="A1", name="Asha")
    assert account.balance == Decimal("0.00")
    assert account.synced is False
    assert account.revision == 1


def test_line_total():
    assert LineItem("Rice", Decimal("2.5"), Decimal("40.00")).line_total == Decimal("100.000")


def test_is_draft():
    txn = Transaction(
        client_id="T1",
        account_id="A1",
        line_items=(LineItem("Rice", Decimal("1"), Decimal("10")),),
        total=Decimal("10"),
        amount_paid=Decimal("0"),
        balance_due=Decimal("10"),
        status=TransactionStatus.DRAFT,
    )
    assert txn.is_draft
    assert not replace(txn, status=TransactionStatus.PENDING).is_draft


def test_drift_difference():
    report = DriftReport(account_id="A1", cached=Decimal("999.00"), recomputed=Decimal("600.00"))
    assert report.difference == Decimal("399.00")


def test_entity_class_values_are_batch_keys():
    assert [cls.value for cls in EntityClass] == ["accounts", "transactions", "ledger", "payments"]
