"""Domain model entities for bizledger.

These are pure data classes representing business concepts, independent of
database schema and of the sync wire format. Entities are immutable; services
derive new versions with ``dataclasses.replace``.
"""

from dataclasses import dataclass
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional


class EntityClass(str, Enum):
    """Entity classes that take part in sync.

    Values double as the keys of the batch sync request and response.
    """

    ACCOUNT = "accounts"
    TRANSACTION = "transactions"
    LEDGER = "ledger"
    PAYMENT = "payments"


class AccountKind(str, Enum):
    CUSTOMER = "customer"
    SUPPLIER = "supplier"


class AccountStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class TransactionType(str, Enum):
    SALE = "sale"
    PURCHASE = "purchase"


class TransactionStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class Direction(str, Enum):
    """Ledger direction.

    Credit increases what the account owes the business, debit decreases it.
    """

    CREDIT = "credit"
    DEBIT = "debit"


class EntrySource(str, Enum):
    TRANSACTION = "transaction"
    PAYMENT = "payment"
    MANUAL = "manual"


class PaymentMethod(str, Enum):
    CASH = "cash"
    UPI = "upi"
    BANK_TRANSFER = "bank_transfer"
    CARD = "card"


class OutboxAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class Account:
    """Customer or supplier account.

    ``balance`` is a cache of the account's ledger; see
    :func:`bizledger.domain.ledger.compute_balance`.
    """

    client_id: str
    name: str
    phone: str = ""
    address: str = ""
    kind: AccountKind = AccountKind.CUSTOMER
    balance: Decimal = Decimal("0.00")
    status: AccountStatus = AccountStatus.ACTIVE
    server_id: Optional[int] = None
    synced: bool = False
    revision: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class LineItem:
    """Line item of a transaction."""

    name: str
    quantity: Decimal
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class Transaction:
    """Invoice-like record of a sale or purchase."""

    client_id: str
    account_id: str
    line_items: tuple[LineItem, ...]
    total: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    status: TransactionStatus
    type: TransactionType = TransactionType.SALE
    tax_percent: Decimal = Decimal("0")
    due_date: Optional[date] = None
    notes: str = ""
    synced: bool = False
    notified: bool = False
    revision: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_draft(self) -> bool:
        return self.status == TransactionStatus.DRAFT


@dataclass(frozen=True)
class Payment:
    """Payment received from (or made to) an account."""

    client_id: str
    account_id: str
    amount: Decimal
    date: date
    transaction_id: Optional[str] = None
    method: PaymentMethod = PaymentMethod.CASH
    note: str = ""
    synced: bool = False
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class LedgerEntry:
    """Immutable monetary event. The sign is carried by ``direction``."""

    client_id: str
    account_id: str
    direction: Direction
    amount: Decimal
    source: EntrySource
    transaction_id: Optional[str] = None
    payment_id: Optional[str] = None
    description: str = ""
    created_at: Optional[datetime] = None
    synced: bool = False


@dataclass(frozen=True)
class OutboxItem:
    """Pending local mutation awaiting remote acknowledgement."""

    id: int
    entity_class: EntityClass
    client_id: str
    action: OutboxAction
    created_at: datetime


@dataclass(frozen=True)
class BalanceReport:
    """Balance of an account computed by full recomputation."""

    account_id: str
    balance: Decimal
    entry_count: int


@dataclass(frozen=True)
class DriftReport:
    """Cached balance disagreeing with the recomputed one."""

    account_id: str
    cached: Decimal
    recomputed: Decimal

    @property
    def difference(self) -> Decimal:
        return self.cached - self.recomputed
