"""Wire schemas for the batch sync request and response.

Each record model names its required fields and documents the defaults of
the optional ones, so incoming data is validated once at the boundary and
nothing deeper in the code has to guess. JSON uses camelCase keys
(``clientId``) and decimals travel as strings.
"""

import datetime as dt
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from bizledger.domain.entities import (
    AccountKind,
    AccountStatus,
    Direction,
    EntityClass,
    EntrySource,
    PaymentMethod,
    TransactionStatus,
    TransactionType,
)

Money = Annotated[Decimal, Field(gt=0, max_digits=12, decimal_places=2)]
NonNegativeMoney = Annotated[Decimal, Field(ge=0, max_digits=12, decimal_places=2)]
ClientId = Annotated[str, Field(min_length=1)]


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    def to_json(self) -> dict[str, Any]:
        """JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class AccountRecord(WireModel):
    """Account as sent by the client.

    The cached balance is not part of the record: each side derives it from
    its own ledger entries.
    """

    client_id: ClientId
    name: Annotated[str, Field(min_length=1)]
    phone: str = ""
    address: str = ""
    kind: AccountKind = AccountKind.CUSTOMER
    status: AccountStatus = AccountStatus.ACTIVE


class LineItemRecord(WireModel):
    name: Annotated[str, Field(min_length=1)]
    quantity: Annotated[Decimal, Field(gt=0)]
    unit_price: Money


class TransactionRecord(WireModel):
    """Transaction as sent by the client.

    ``balance_due`` defaults to ``max(0, total - amount_paid)`` when omitted
    and must equal it when present.
    """

    client_id: ClientId
    account_id: ClientId
    type: TransactionType = TransactionType.SALE
    line_items: Annotated[list[LineItemRecord], Field(min_length=1)]
    tax_percent: Annotated[Decimal, Field(ge=0)] = Decimal("0")
    total: Money
    amount_paid: NonNegativeMoney = Decimal("0")
    balance_due: Optional[NonNegativeMoney] = None
    status: TransactionStatus = TransactionStatus.PENDING
    due_date: Optional[date] = None
    notes: str = ""
    notified: bool = False

    @model_validator(mode="after")
    def check_amounts(self) -> "TransactionRecord":
        expected = max(Decimal("0"), self.total - self.amount_paid)
        if self.balance_due is None:
            self.balance_due = expected
        elif self.balance_due != expected:
            raise ValueError(
                f"balanceDue {self.balance_due} does not equal max(0, total - amountPaid) = {expected}"
            )
        if self.status != TransactionStatus.DRAFT:
            if (self.status == TransactionStatus.PAID) != (self.balance_due == 0):
                raise ValueError(
                    f"status '{self.status.value}' is inconsistent with balanceDue {self.balance_due}"
                )
        return self


class LedgerEntryRecord(WireModel):
    client_id: ClientId
    account_id: ClientId
    direction: Direction
    amount: Money
    source: EntrySource = EntrySource.TRANSACTION
    transaction_id: Optional[str] = None
    payment_id: Optional[str] = None
    description: str = ""
    created_at: Optional[datetime] = None


class PaymentRecord(WireModel):
    client_id: ClientId
    account_id: ClientId
    transaction_id: Optional[str] = None
    amount: Money
    method: PaymentMethod = PaymentMethod.CASH
    date: dt.date = Field(default_factory=dt.date.today)
    note: str = ""


RECORD_MODELS: dict[EntityClass, type[WireModel]] = {
    EntityClass.ACCOUNT: AccountRecord,
    EntityClass.TRANSACTION: TransactionRecord,
    EntityClass.LEDGER: LedgerEntryRecord,
    EntityClass.PAYMENT: PaymentRecord,
}


class SyncBatch(WireModel):
    """Batch request keyed by entity class.

    Records stay raw dicts here so that one malformed record is rejected on
    its own instead of failing the whole batch.
    """

    accounts: list[Any] = Field(default_factory=list)
    transactions: list[Any] = Field(default_factory=list)
    ledger: list[Any] = Field(default_factory=list)
    payments: list[Any] = Field(default_factory=list)

    def records(self, entity_class: EntityClass) -> list[Any]:
        return getattr(self, entity_class.value)

    def is_empty(self) -> bool:
        return not any(self.records(entity_class) for entity_class in EntityClass)


class SyncCounts(WireModel):
    accounts: int = 0
    transactions: int = 0
    ledger: int = 0
    payments: int = 0

    def total(self) -> int:
        return self.accounts + self.transactions + self.ledger + self.payments


class RecordError(WireModel):
    entity_class: EntityClass = Field(alias="class")
    client_id: Optional[str] = None
    error: str


class SyncResponse(WireModel):
    synced: SyncCounts = Field(default_factory=SyncCounts)
    transactions_needing_notification: list[str] = Field(default_factory=list)
    errors: list[RecordError] = Field(default_factory=list)
    server_ids: dict[str, dict[str, int]] = Field(default_factory=dict)

    def failed_ids(self, entity_class: EntityClass) -> set[str]:
        """Client ids of the records of a class the server rejected."""
        return {
            err.client_id
            for err in self.errors
            if err.entity_class == entity_class and err.client_id is not None
        }
