"""Ledger engine.

Pure functions that build ledger entries from business events and derive
balances from them. Nothing in this module touches storage; services apply
the results inside a unit of work.

Balance of an account::

    balance = sum(credit amounts) - sum(debit amounts)
"""

from dataclasses import replace
from datetime import datetime, UTC
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Iterable, Optional

from bizledger.domain.entities import (
    Account,
    Direction,
    DriftReport,
    EntrySource,
    LedgerEntry,
    LineItem,
    Payment,
    Transaction,
    TransactionStatus,
)
from bizledger.domain.errors import ValidationError, non_positive_amount
from bizledger.utils.ids import new_client_id

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Convert a number or numeric string to a Decimal rounded to cents."""
    try:
        amount = Decimal(str(value))
        if amount.is_finite():
            return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Invalid monetary amount {value!r}") from e
    raise ValidationError(f"Invalid monetary amount {value!r}")


def make_entry(
    account_id: str,
    direction: Direction,
    amount: Decimal,
    source: EntrySource,
    transaction_id: Optional[str] = None,
    payment_id: Optional[str] = None,
    description: str = "",
    client_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> LedgerEntry:
    """Construct a ledger entry.

    Raises:
        ValidationError: If the amount is zero or negative, or the account
            reference is empty
    """
    if not account_id:
        raise ValidationError("Ledger entry requires an account")
    amount = to_money(amount)
    if amount <= ZERO:
        raise ValidationError(non_positive_amount(amount))
    return LedgerEntry(
        client_id=client_id or new_client_id(),
        account_id=account_id,
        direction=Direction(direction),
        amount=amount,
        source=EntrySource(source),
        transaction_id=transaction_id,
        payment_id=payment_id,
        description=description,
        created_at=created_at or datetime.now(UTC),
    )


def signed_amount(entry: LedgerEntry) -> Decimal:
    """Return the entry amount with the sign implied by its direction."""
    if entry.direction == Direction.CREDIT:
        return entry.amount
    return -entry.amount


def compute_balance(entries: Iterable[LedgerEntry]) -> Decimal:
    """Derive a balance from ledger entries (credits minus debits)."""
    return sum((signed_amount(e) for e in entries), ZERO)


def validate_line_items(line_items: Iterable[LineItem]) -> tuple[LineItem, ...]:
    """Check line items and normalize them to a tuple.

    Raises:
        ValidationError: If there are no items, or an item has an empty name
            or a non-positive quantity or unit price
    """
    items = tuple(line_items)
    if not items:
        raise ValidationError("At least one line item is required")
    for item in items:
        if not item.name or not item.name.strip():
            raise ValidationError("Line item name is required")
        if not item.quantity.is_finite() or item.quantity <= 0:
            raise ValidationError(f"Quantity of '{item.name}' must be positive")
        if not item.unit_price.is_finite() or item.unit_price <= 0:
            raise ValidationError(f"Unit price of '{item.name}' must be positive")
    return items


def compute_total(line_items: Iterable[LineItem], tax_percent: Decimal = Decimal("0")) -> Decimal:
    """Sum of line totals plus tax, rounded to cents."""
    if not Decimal(tax_percent).is_finite():
        raise ValidationError(f"Invalid tax percent {tax_percent!r}")
    if tax_percent < 0:
        raise ValidationError("Tax percent cannot be negative")
    subtotal = sum((item.line_total for item in line_items), Decimal("0"))
    return to_money(subtotal * (Decimal("1") + Decimal(tax_percent) / Decimal("100")))


def compute_balance_due(total: Decimal, amount_paid: Decimal) -> Decimal:
    """Balance due, floored at zero."""
    return max(ZERO, to_money(total - amount_paid))


def derive_status(
    balance_due: Decimal,
    amount_paid: Decimal,
    current: Optional[TransactionStatus] = None,
) -> TransactionStatus:
    """Derive the status of a finalized transaction.

    A transaction is paid exactly when nothing is due. An overdue transaction
    stays overdue until paid off.
    """
    if current == TransactionStatus.DRAFT:
        return TransactionStatus.DRAFT
    if balance_due == ZERO:
        return TransactionStatus.PAID
    if current == TransactionStatus.OVERDUE:
        return TransactionStatus.OVERDUE
    if amount_paid > ZERO:
        return TransactionStatus.PARTIAL
    return TransactionStatus.PENDING


def credit_for_transaction(txn: Transaction, client_id: Optional[str] = None) -> LedgerEntry:
    """Build the materializing credit entry of a finalized transaction.

    The entry carries the balance due at creation, so amounts prepaid at
    creation never reach the ledger.

    Raises:
        ValidationError: If the transaction is a draft or nothing is due
    """
    if txn.is_draft:
        raise ValidationError(f"Draft transaction {txn.client_id} has no ledger entry")
    return make_entry(
        account_id=txn.account_id,
        direction=Direction.CREDIT,
        amount=txn.balance_due,
        source=EntrySource.TRANSACTION,
        transaction_id=txn.client_id,
        description=f"{txn.type.value.capitalize()} {txn.client_id}",
        client_id=client_id,
    )


def debit_for_payment(payment: Payment, client_id: Optional[str] = None) -> LedgerEntry:
    """Build the debit entry recording a payment."""
    return make_entry(
        account_id=payment.account_id,
        direction=Direction.DEBIT,
        amount=payment.amount,
        source=EntrySource.PAYMENT,
        transaction_id=payment.transaction_id,
        payment_id=payment.client_id,
        description=payment.note or f"Payment ({payment.method.value})",
        client_id=client_id,
    )


def manual_adjustment(
    account_id: str,
    direction: Direction,
    amount: Decimal,
    description: str = "",
    client_id: Optional[str] = None,
) -> LedgerEntry:
    """Build a manual adjustment entry with caller-chosen direction."""
    return make_entry(
        account_id=account_id,
        direction=direction,
        amount=amount,
        source=EntrySource.MANUAL,
        description=description or f"Manual {Direction(direction).value}",
        client_id=client_id,
    )


def apply_payment(txn: Transaction, amount: Decimal) -> Transaction:
    """Return the transaction after a payment of ``amount`` against it.

    Raises:
        ValidationError: If the transaction is a draft or amount is not positive
    """
    if txn.is_draft:
        raise ValidationError(f"Cannot record a payment against draft transaction {txn.client_id}")
    amount = to_money(amount)
    if amount <= ZERO:
        raise ValidationError(non_positive_amount(amount))
    amount_paid = to_money(txn.amount_paid + amount)
    balance_due = compute_balance_due(txn.total, amount_paid)
    return replace(
        txn,
        amount_paid=amount_paid,
        balance_due=balance_due,
        status=derive_status(balance_due, amount_paid, txn.status),
    )


def detect_drift(account: Account, entries: Iterable[LedgerEntry]) -> Optional[DriftReport]:
    """Compare the cached balance with a recomputation. Never corrects it."""
    recomputed = compute_balance(entries)
    if to_money(account.balance) == recomputed:
        return None
    return DriftReport(account_id=account.client_id, cached=account.balance, recomputed=recomputed)
