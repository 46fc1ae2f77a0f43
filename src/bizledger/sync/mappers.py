"""Mapper functions between domain entities and wire records.

Entities built from incoming records are flagged synced: on the remote store
they are the acknowledged copy.
"""

from datetime import datetime, UTC
from decimal import Decimal

from bizledger.domain import entities as domain
from bizledger.domain.ledger import to_money
from bizledger.sync.schemas import (
    AccountRecord,
    LedgerEntryRecord,
    LineItemRecord,
    PaymentRecord,
    TransactionRecord,
    WireModel,
)


def account_to_record(account: domain.Account) -> AccountRecord:
    return AccountRecord(
        client_id=account.client_id,
        name=account.name,
        phone=account.phone,
        address=account.address,
        kind=account.kind,
        status=account.status,
    )


def transaction_to_record(txn: domain.Transaction) -> TransactionRecord:
    return TransactionRecord(
        client_id=txn.client_id,
        account_id=txn.account_id,
        type=txn.type,
        line_items=[
            LineItemRecord(name=item.name, quantity=item.quantity, unit_price=item.unit_price)
            for item in txn.line_items
        ],
        tax_percent=txn.tax_percent,
        total=txn.total,
        amount_paid=txn.amount_paid,
        balance_due=txn.balance_due,
        status=txn.status,
        due_date=txn.due_date,
        notes=txn.notes,
        notified=txn.notified,
    )


def ledger_entry_to_record(entry: domain.LedgerEntry) -> LedgerEntryRecord:
    return LedgerEntryRecord(
        client_id=entry.client_id,
        account_id=entry.account_id,
        direction=entry.direction,
        amount=entry.amount,
        source=entry.source,
        transaction_id=entry.transaction_id,
        payment_id=entry.payment_id,
        description=entry.description,
        created_at=entry.created_at,
    )


def payment_to_record(payment: domain.Payment) -> PaymentRecord:
    return PaymentRecord(
        client_id=payment.client_id,
        account_id=payment.account_id,
        transaction_id=payment.transaction_id,
        amount=payment.amount,
        method=payment.method,
        date=payment.date,
        note=payment.note,
    )


TO_RECORD = {
    domain.Account: account_to_record,
    domain.Transaction: transaction_to_record,
    domain.LedgerEntry: ledger_entry_to_record,
    domain.Payment: payment_to_record,
}


def entity_to_record(entity) -> WireModel:
    """Convert any syncable entity to its wire record."""
    try:
        mapper = TO_RECORD[type(entity)]
    except KeyError:
        raise TypeError(f"Not a syncable entity: {type(entity).__name__}") from None
    return mapper(entity)


def record_to_account(record: AccountRecord, existing: domain.Account | None = None) -> domain.Account:
    """Build the stored account from a record.

    Balance and server id belong to the store, so they are taken from
    ``existing`` when there is one.
    """
    now = datetime.now(UTC)
    return domain.Account(
        client_id=record.client_id,
        name=record.name,
        phone=record.phone,
        address=record.address,
        kind=record.kind,
        balance=existing.balance if existing else Decimal("0.00"),
        status=record.status,
        server_id=existing.server_id if existing else None,
        synced=True,
        revision=existing.revision + 1 if existing else 1,
        created_at=existing.created_at if existing else now,
        updated_at=now,
    )


def record_to_transaction(
    record: TransactionRecord, existing: domain.Transaction | None = None
) -> domain.Transaction:
    now = datetime.now(UTC)
    return domain.Transaction(
        client_id=record.client_id,
        account_id=record.account_id,
        line_items=tuple(
            domain.LineItem(name=item.name, quantity=item.quantity, unit_price=item.unit_price)
            for item in record.line_items
        ),
        total=to_money(record.total),
        amount_paid=to_money(record.amount_paid),
        balance_due=to_money(record.balance_due),
        status=record.status,
        type=record.type,
        tax_percent=record.tax_percent,
        due_date=record.due_date,
        notes=record.notes,
        synced=True,
        notified=record.notified or bool(existing and existing.notified),
        revision=existing.revision + 1 if existing else 1,
        created_at=existing.created_at if existing else now,
        updated_at=now,
    )


def record_to_ledger_entry(record: LedgerEntryRecord) -> domain.LedgerEntry:
    return domain.LedgerEntry(
        client_id=record.client_id,
        account_id=record.account_id,
        direction=record.direction,
        amount=to_money(record.amount),
        source=record.source,
        transaction_id=record.transaction_id,
        payment_id=record.payment_id,
        description=record.description,
        created_at=record.created_at or datetime.now(UTC),
        synced=True,
    )


def record_to_payment(record: PaymentRecord) -> domain.Payment:
    return domain.Payment(
        client_id=record.client_id,
        account_id=record.account_id,
        amount=to_money(record.amount),
        date=record.date,
        transaction_id=record.transaction_id,
        method=record.method,
        note=record.note,
        synced=True,
        created_at=datetime.now(UTC),
    )
