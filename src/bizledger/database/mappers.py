"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, so that enums, decimals and the
JSON encoding of line items stay out of both the ORM models and the domain.
"""

from decimal import Decimal
from typing import Any

from bizledger.domain import entities as domain
from bizledger.database.models import (
    Account as ORMAccount,
    Transaction as ORMTransaction,
    LedgerEntry as ORMLedgerEntry,
    Payment as ORMPayment,
    OutboxItem as ORMOutboxItem,
)


def account_to_domain(orm_account: ORMAccount) -> domain.Account:
    """Convert SQLAlchemy Account model to domain Account entity."""
    return domain.Account(
        client_id=orm_account.client_id,
        name=orm_account.name,
        phone=orm_account.phone,
        address=orm_account.address,
        kind=domain.AccountKind(orm_account.kind),
        balance=Decimal(orm_account.balance),
        status=domain.AccountStatus(orm_account.status),
        server_id=orm_account.server_id,
        synced=orm_account.synced,
        revision=orm_account.revision,
        created_at=orm_account.created_at,
        updated_at=orm_account.updated_at,
    )


def account_to_fields(account: domain.Account) -> dict[str, Any]:
    """Column values of an Account entity."""
    fields = {
        "client_id": account.client_id,
        "name": account.name,
        "phone": account.phone,
        "address": account.address,
        "kind": account.kind.value,
        "balance": account.balance,
        "status": account.status.value,
        "server_id": account.server_id,
        "synced": account.synced,
        "revision": account.revision,
    }
    if account.created_at is not None:
        fields["created_at"] = account.created_at
    if account.updated_at is not None:
        fields["updated_at"] = account.updated_at
    return fields


def line_items_to_json(line_items: tuple[domain.LineItem, ...]) -> list[dict[str, str]]:
    """Encode line items for the JSON column. Decimals are kept as strings."""
    return [
        {"name": item.name, "quantity": str(item.quantity), "unit_price": str(item.unit_price)}
        for item in line_items
    ]


def line_items_from_json(data: list[dict[str, Any]]) -> tuple[domain.LineItem, ...]:
    """Decode line items from the JSON column."""
    return tuple(
        domain.LineItem(
            name=item["name"],
            quantity=Decimal(str(item["quantity"])),
            unit_price=Decimal(str(item["unit_price"])),
        )
        for item in data
    )


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity."""
    return domain.Transaction(
        client_id=orm_transaction.client_id,
        account_id=orm_transaction.account_id,
        line_items=line_items_from_json(orm_transaction.line_items),
        total=Decimal(orm_transaction.total),
        amount_paid=Decimal(orm_transaction.amount_paid),
        balance_due=Decimal(orm_transaction.balance_due),
        status=domain.TransactionStatus(orm_transaction.status),
        type=domain.TransactionType(orm_transaction.type),
        tax_percent=Decimal(orm_transaction.tax_percent),
        due_date=orm_transaction.due_date,
        notes=orm_transaction.notes,
        synced=orm_transaction.synced,
        notified=orm_transaction.notified,
        revision=orm_transaction.revision,
        created_at=orm_transaction.created_at,
        updated_at=orm_transaction.updated_at,
    )


def transaction_to_fields(txn: domain.Transaction) -> dict[str, Any]:
    """Column values of a Transaction entity."""
    fields = {
        "client_id": txn.client_id,
        "account_id": txn.account_id,
        "type": txn.type.value,
        "line_items": line_items_to_json(txn.line_items),
        "tax_percent": txn.tax_percent,
        "total": txn.total,
        "amount_paid": txn.amount_paid,
        "balance_due": txn.balance_due,
        "status": txn.status.value,
        "due_date": txn.due_date,
        "notes": txn.notes,
        "synced": txn.synced,
        "notified": txn.notified,
        "revision": txn.revision,
    }
    if txn.created_at is not None:
        fields["created_at"] = txn.created_at
    if txn.updated_at is not None:
        fields["updated_at"] = txn.updated_at
    return fields


def ledger_entry_to_domain(orm_entry: ORMLedgerEntry) -> domain.LedgerEntry:
    """Convert SQLAlchemy LedgerEntry model to domain LedgerEntry entity."""
    return domain.LedgerEntry(
        client_id=orm_entry.client_id,
        account_id=orm_entry.account_id,
        direction=domain.Direction(orm_entry.direction),
        amount=Decimal(orm_entry.amount),
        source=domain.EntrySource(orm_entry.source),
        transaction_id=orm_entry.transaction_id,
        payment_id=orm_entry.payment_id,
        description=orm_entry.description,
        created_at=orm_entry.created_at,
        synced=orm_entry.synced,
    )


def ledger_entry_to_fields(entry: domain.LedgerEntry) -> dict[str, Any]:
    """Column values of a LedgerEntry entity."""
    fields = {
        "client_id": entry.client_id,
        "account_id": entry.account_id,
        "direction": entry.direction.value,
        "amount": entry.amount,
        "source": entry.source.value,
        "transaction_id": entry.transaction_id,
        "payment_id": entry.payment_id,
        "description": entry.description,
        "synced": entry.synced,
    }
    if entry.created_at is not None:
        fields["created_at"] = entry.created_at
    return fields


def payment_to_domain(orm_payment: ORMPayment) -> domain.Payment:
    """Convert SQLAlchemy Payment model to domain Payment entity."""
    return domain.Payment(
        client_id=orm_payment.client_id,
        account_id=orm_payment.account_id,
        amount=Decimal(orm_payment.amount),
        date=orm_payment.date,
        transaction_id=orm_payment.transaction_id,
        method=domain.PaymentMethod(orm_payment.method),
        note=orm_payment.note,
        synced=orm_payment.synced,
        created_at=orm_payment.created_at,
    )


def payment_to_fields(payment: domain.Payment) -> dict[str, Any]:
    """Column values of a Payment entity."""
    fields = {
        "client_id": payment.client_id,
        "account_id": payment.account_id,
        "transaction_id": payment.transaction_id,
        "amount": payment.amount,
        "method": payment.method.value,
        "date": payment.date,
        "note": payment.note,
        "synced": payment.synced,
    }
    if payment.created_at is not None:
        fields["created_at"] = payment.created_at
    return fields


def outbox_item_to_domain(orm_item: ORMOutboxItem) -> domain.OutboxItem:
    """Convert SQLAlchemy OutboxItem model to domain OutboxItem entity."""
    return domain.OutboxItem(
        id=orm_item.id,
        entity_class=domain.EntityClass(orm_item.entity_class),
        client_id=orm_item.client_id,
        action=domain.OutboxAction(orm_item.action),
        created_at=orm_item.created_at,
    )
