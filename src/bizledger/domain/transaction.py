"""Transaction (sale / purchase) domain service."""

from dataclasses import replace
from datetime import date, datetime, UTC
from decimal import Decimal
from typing import Iterable, Optional

from bizledger.database.base import Database
from bizledger.domain.entities import (
    AccountStatus,
    EntityClass,
    LineItem,
    OutboxAction,
    Transaction as TransactionEntity,
    TransactionStatus,
    TransactionType,
)
from bizledger.domain.errors import NotFoundError, ValidationError, account_not_found, transaction_not_found
from bizledger.domain.ledger import (
    ZERO,
    compute_balance_due,
    compute_total,
    credit_for_transaction,
    derive_status,
    signed_amount,
    to_money,
    validate_line_items,
)
from bizledger.sync.outbox import Outbox
from bizledger.utils.ids import new_client_id

OPEN_STATUSES = (TransactionStatus.PENDING, TransactionStatus.PARTIAL)


class TransactionService:
    """Service for managing sales and purchases."""

    def __init__(self, db: Database, outbox: Optional[Outbox] = None):
        """Initialize transaction service.

        Args:
            db: Database instance
            outbox: Outbox shared with the sync engine (created if omitted)
        """
        self.db = db
        self.outbox = outbox if outbox is not None else Outbox(db)

    def create_transaction(
        self,
        account_id: str,
        line_items: Iterable[LineItem],
        type: TransactionType = TransactionType.SALE,
        amount_paid: Decimal = ZERO,
        tax_percent: Decimal = Decimal("0"),
        due_date: Optional[date] = None,
        notes: str = "",
        draft: bool = False,
        client_id: Optional[str] = None,
    ) -> TransactionEntity:
        """Create a sale or purchase.

        A finalized transaction is written together with its materializing
        credit entry (the balance due at creation) and the matching change to
        the account's cached balance. Drafts get no ledger entry until
        :meth:`finalize`.

        Args:
            account_id: Client id of the account
            line_items: At least one item; quantities and prices positive
            type: Sale or purchase
            amount_paid: Amount already paid at creation
            tax_percent: Tax added on top of the line totals
            due_date: Optional due date, used by :meth:`mark_overdue`
            notes: Free-form notes
            draft: Create as draft
            client_id: Client id to use (generated if omitted)

        Returns:
            The created transaction

        Raises:
            NotFoundError: If the account does not exist
            ValidationError: If the account is inactive or any amount is invalid
        """
        account = self.db.get(EntityClass.ACCOUNT, account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        if account.status != AccountStatus.ACTIVE:
            raise ValidationError(f"Account '{account.name}' is inactive")

        items = validate_line_items(line_items)
        tax_percent = Decimal(tax_percent)
        total = compute_total(items, tax_percent)
        amount_paid = self._validate_amount_paid(amount_paid, total)
        balance_due = compute_balance_due(total, amount_paid)
        if draft:
            status = TransactionStatus.DRAFT
        else:
            status = derive_status(balance_due, amount_paid)

        now = datetime.now(UTC)
        txn = TransactionEntity(
            client_id=client_id or new_client_id(),
            account_id=account_id,
            line_items=items,
            total=total,
            amount_paid=amount_paid,
            balance_due=balance_due,
            status=status,
            type=TransactionType(type),
            tax_percent=tax_percent,
            due_date=due_date,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        with self.db.unit_of_work():
            self.db.put(txn)
            self.outbox.enqueue(EntityClass.TRANSACTION, txn.client_id, OutboxAction.CREATE)
            if not draft:
                self._materialize(txn)
        return txn

    def finalize(self, client_id: str) -> TransactionEntity:
        """Turn a draft into a finalized transaction and write its ledger entry.

        Raises:
            NotFoundError: If the transaction does not exist
            ValidationError: If the transaction is not a draft
        """
        txn = self.require_transaction(client_id)
        if not txn.is_draft:
            raise ValidationError(f"Transaction {client_id} is not a draft")
        finalized = self._touch(
            txn, status=derive_status(txn.balance_due, txn.amount_paid)
        )
        with self.db.unit_of_work():
            self.db.put(finalized)
            self.outbox.enqueue(EntityClass.TRANSACTION, client_id, OutboxAction.UPDATE)
            self._materialize(finalized)
        return finalized

    def update_draft(
        self,
        client_id: str,
        line_items: Optional[Iterable[LineItem]] = None,
        amount_paid: Optional[Decimal] = None,
        tax_percent: Optional[Decimal] = None,
    ) -> TransactionEntity:
        """Change the amounts of a draft. Finalized amounts are fixed.

        Raises:
            NotFoundError: If the transaction does not exist
            ValidationError: If the transaction is not a draft or amounts are invalid
        """
        txn = self.require_transaction(client_id)
        if not txn.is_draft:
            raise ValidationError(f"Only drafts can be edited; {client_id} is {txn.status.value}")
        items = validate_line_items(line_items) if line_items is not None else txn.line_items
        tax = Decimal(tax_percent) if tax_percent is not None else txn.tax_percent
        total = compute_total(items, tax)
        paid = self._validate_amount_paid(
            amount_paid if amount_paid is not None else txn.amount_paid, total
        )
        updated = self._touch(
            txn,
            line_items=items,
            tax_percent=tax,
            total=total,
            amount_paid=paid,
            balance_due=compute_balance_due(total, paid),
        )
        self._save(updated)
        return updated

    def update_details(
        self,
        client_id: str,
        notes: Optional[str] = None,
        due_date: Optional[date] = None,
    ) -> TransactionEntity:
        """Update notes or due date of any transaction."""
        txn = self.require_transaction(client_id)
        changes = {}
        if notes is not None:
            changes["notes"] = notes
        if due_date is not None:
            changes["due_date"] = due_date
        if not changes:
            return txn
        updated = self._touch(txn, **changes)
        self._save(updated)
        return updated

    def mark_overdue(self, as_of: Optional[date] = None) -> list[TransactionEntity]:
        """Flag open transactions whose due date is before ``as_of``.

        Returns:
            The transactions that changed status
        """
        as_of = as_of or date.today()
        changed = []
        with self.db.unit_of_work():
            for txn in self.db.list_transactions():
                if txn.status not in OPEN_STATUSES or txn.due_date is None:
                    continue
                if txn.due_date >= as_of:
                    continue
                updated = self._touch(txn, status=TransactionStatus.OVERDUE)
                self._save(updated)
                changed.append(updated)
        return changed

    def mark_notified(self, client_id: str) -> TransactionEntity:
        """Record that the external notification was dispatched."""
        txn = self.require_transaction(client_id)
        if txn.notified:
            return txn
        updated = self._touch(txn, notified=True)
        self._save(updated)
        return updated

    def get_transaction(self, client_id: str) -> Optional[TransactionEntity]:
        """Get transaction by client id.

        Returns:
            Transaction entity or None if not found
        """
        return self.db.get(EntityClass.TRANSACTION, client_id)

    def require_transaction(self, client_id: str) -> TransactionEntity:
        """Get transaction by client id or raise NotFoundError."""
        txn = self.get_transaction(client_id)
        if txn is None:
            raise NotFoundError(transaction_not_found(client_id))
        return txn

    def list_transactions(self, account_id: Optional[str] = None) -> list[TransactionEntity]:
        """List transactions, newest first."""
        return self.db.list_transactions(account_id=account_id)

    def _materialize(self, txn: TransactionEntity) -> None:
        # Nothing owed means nothing to record: ledger amounts are strictly positive
        if txn.balance_due <= ZERO:
            return
        entry = credit_for_transaction(txn)
        self.db.put(entry)
        self.outbox.enqueue(EntityClass.LEDGER, entry.client_id, OutboxAction.CREATE)
        self.db.apply_balance_delta(txn.account_id, signed_amount(entry))

    def _save(self, txn: TransactionEntity) -> None:
        with self.db.unit_of_work():
            self.db.put(txn)
            self.outbox.enqueue(EntityClass.TRANSACTION, txn.client_id, OutboxAction.UPDATE)

    @staticmethod
    def _touch(txn: TransactionEntity, **changes) -> TransactionEntity:
        return replace(
            txn,
            revision=txn.revision + 1,
            synced=False,
            updated_at=datetime.now(UTC),
            **changes,
        )

    @staticmethod
    def _validate_amount_paid(amount_paid, total: Decimal) -> Decimal:
        amount_paid = to_money(amount_paid)
        if amount_paid < ZERO:
            raise ValidationError("Amount paid cannot be negative")
        if amount_paid > total:
            raise ValidationError(f"Amount paid {amount_paid} exceeds total {total}")
        return amount_paid
