"""Payment domain service."""

from dataclasses import replace
from datetime import date, datetime, UTC
from decimal import Decimal
from typing import Optional

from bizledger.database.base import Database
from bizledger.domain.entities import (
    EntityClass,
    OutboxAction,
    Payment as PaymentEntity,
    PaymentMethod,
)
from bizledger.domain.errors import NotFoundError, ValidationError, account_not_found, transaction_not_found
from bizledger.domain.ledger import ZERO, apply_payment, debit_for_payment, signed_amount, to_money
from bizledger.sync.outbox import Outbox
from bizledger.utils.ids import new_client_id


class PaymentService:
    """Service for recording payments.

    The ledger engine owns the rule (a payment implies a debit entry, a
    balance delta and a status recompute of the referenced transaction);
    this service applies all of its effects in one unit of work.
    """

    def __init__(self, db: Database, outbox: Optional[Outbox] = None):
        """Initialize payment service.

        Args:
            db: Database instance
            outbox: Outbox shared with the sync engine (created if omitted)
        """
        self.db = db
        self.outbox = outbox if outbox is not None else Outbox(db)

    def record_payment(
        self,
        account_id: str,
        amount: Decimal,
        transaction_id: Optional[str] = None,
        method: PaymentMethod = PaymentMethod.CASH,
        payment_date: Optional[date] = None,
        note: str = "",
        client_id: Optional[str] = None,
    ) -> PaymentEntity:
        """Record a payment, standalone or against a transaction.

        Args:
            account_id: Client id of the paying account
            amount: Positive payment amount
            transaction_id: Optional client id of the transaction being paid
            method: Payment method
            payment_date: Date of payment (defaults to today)
            note: Free-form note
            client_id: Client id to use (generated if omitted)

        Returns:
            The recorded payment

        Raises:
            NotFoundError: If the account or transaction does not exist
            ValidationError: If the amount is not positive, the transaction is a
                draft, or it belongs to another account
        """
        if self.db.get(EntityClass.ACCOUNT, account_id) is None:
            raise NotFoundError(account_not_found(account_id))
        amount = to_money(amount)
        if amount <= ZERO:
            raise ValidationError(f"Payment amount must be positive, got {amount}")

        paid_txn = None
        if transaction_id is not None:
            txn = self.db.get(EntityClass.TRANSACTION, transaction_id)
            if txn is None:
                raise NotFoundError(transaction_not_found(transaction_id))
            if txn.account_id != account_id:
                raise ValidationError(
                    f"Transaction {transaction_id} belongs to another account"
                )
            paid_txn = replace(
                apply_payment(txn, amount),
                revision=txn.revision + 1,
                synced=False,
                updated_at=datetime.now(UTC),
            )

        payment = PaymentEntity(
            client_id=client_id or new_client_id(),
            account_id=account_id,
            amount=amount,
            date=payment_date or date.today(),
            transaction_id=transaction_id,
            method=PaymentMethod(method),
            note=note,
            created_at=datetime.now(UTC),
        )
        entry = debit_for_payment(payment)

        with self.db.unit_of_work():
            self.db.put(payment)
            self.outbox.enqueue(EntityClass.PAYMENT, payment.client_id, OutboxAction.CREATE)
            self.db.put(entry)
            self.outbox.enqueue(EntityClass.LEDGER, entry.client_id, OutboxAction.CREATE)
            self.db.apply_balance_delta(account_id, signed_amount(entry))
            if paid_txn is not None:
                self.db.put(paid_txn)
                self.outbox.enqueue(EntityClass.TRANSACTION, paid_txn.client_id, OutboxAction.UPDATE)
        return payment

    def get_payment(self, client_id: str) -> Optional[PaymentEntity]:
        """Get payment by client id."""
        return self.db.get(EntityClass.PAYMENT, client_id)

    def list_payments(self, account_id: Optional[str] = None) -> list[PaymentEntity]:
        """List payments, newest first."""
        return self.db.list_payments(account_id=account_id)
