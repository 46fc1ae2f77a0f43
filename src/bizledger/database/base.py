"""Abstract database interface (the entity store)."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from decimal import Decimal
from typing import Callable, Iterable, Optional, Union

# Import entities directly to avoid circular import through domain/__init__.py
from bizledger.domain.entities import (
    Account,
    EntityClass,
    LedgerEntry,
    OutboxAction,
    OutboxItem,
    Payment,
    Transaction,
)

Entity = Union[Account, Transaction, LedgerEntry, Payment]

ENTITY_TYPES: dict[EntityClass, type] = {
    EntityClass.ACCOUNT: Account,
    EntityClass.TRANSACTION: Transaction,
    EntityClass.LEDGER: LedgerEntry,
    EntityClass.PAYMENT: Payment,
}


def entity_class_of(entity: Entity) -> EntityClass:
    """Return the entity class of a domain entity."""
    for entity_class, entity_type in ENTITY_TYPES.items():
        if isinstance(entity, entity_type):
            return entity_class
    raise TypeError(f"Not a syncable entity: {type(entity).__name__}")


class Database(ABC):
    """Abstract database interface for bizledger.

    The same interface backs the device's local store and the remote store
    the reconciler writes to.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Bring the schema up to date by running pending migrations."""
        pass

    # Atomicity
    @abstractmethod
    def unit_of_work(self) -> AbstractContextManager[None]:
        """Group writes into one local transaction.

        Everything written inside the block is committed together when the
        block exits, or rolled back together if it raises. Nested blocks
        join the outermost one.
        """
        pass

    @abstractmethod
    def savepoint(self) -> AbstractContextManager[None]:
        """Isolate a group of writes inside the current unit of work.

        If the block raises, only its own writes are rolled back.
        """
        pass

    # Generic entity operations
    @abstractmethod
    def get(self, entity_class: EntityClass, client_id: str) -> Optional[Entity]:
        """Get an entity by client id."""
        pass

    @abstractmethod
    def put(self, entity: Entity) -> None:
        """Insert or replace an entity, keyed by client id.

        Raises:
            ConflictError: If a ledger entry or payment with the same client
                id already exists (those classes are append-only)
        """
        pass

    @abstractmethod
    def query(
        self,
        entity_class: EntityClass,
        predicate: Optional[Callable[[Entity], bool]] = None,
    ) -> list[Entity]:
        """List entities of a class, optionally filtered by a predicate."""
        pass

    # Typed queries
    @abstractmethod
    def list_accounts(self) -> list[Account]:
        """List all accounts ordered by name."""
        pass

    @abstractmethod
    def list_transactions(self, account_id: Optional[str] = None) -> list[Transaction]:
        """List transactions, newest first, optionally for one account."""
        pass

    @abstractmethod
    def list_payments(self, account_id: Optional[str] = None) -> list[Payment]:
        """List payments, newest first, optionally for one account."""
        pass

    @abstractmethod
    def list_ledger_entries(self, account_id: str) -> list[LedgerEntry]:
        """List ledger entries of an account in insertion order."""
        pass

    @abstractmethod
    def list_unsynced(self, entity_class: EntityClass) -> list[Entity]:
        """List entities of a class not yet acknowledged by the remote store."""
        pass

    @abstractmethod
    def count_unsynced(self, entity_class: EntityClass) -> int:
        """Count entities of a class not yet acknowledged by the remote store."""
        pass

    # Sync bookkeeping
    @abstractmethod
    def mark_synced(
        self, entity_class: EntityClass, client_id: str, revision: Optional[int] = None
    ) -> bool:
        """Flag an entity as acknowledged by the remote store.

        When ``revision`` is given the flag is only set if the entity still
        has that revision. Returns whether the flag was set.
        """
        pass

    @abstractmethod
    def get_row_id(self, entity_class: EntityClass, client_id: str) -> Optional[int]:
        """Return the store's own numeric id of an entity, if present."""
        pass

    @abstractmethod
    def set_server_id(self, client_id: str, server_id: int) -> None:
        """Record the remote store's id for an account."""
        pass

    # Cached balance
    @abstractmethod
    def set_account_balance(self, client_id: str, balance: Decimal) -> None:
        """Overwrite the cached balance of an account."""
        pass

    @abstractmethod
    def apply_balance_delta(self, client_id: str, delta: Decimal) -> Decimal:
        """Add a signed delta to the cached balance. Returns the new balance."""
        pass

    # Outbox
    @abstractmethod
    def enqueue_outbox(
        self, entity_class: EntityClass, client_id: str, action: OutboxAction
    ) -> int:
        """Append an outbox item. Returns its id."""
        pass

    @abstractmethod
    def list_outbox(self, max_id: Optional[int] = None) -> list[OutboxItem]:
        """List outbox items in id order, optionally up to ``max_id``."""
        pass

    @abstractmethod
    def delete_outbox(self, item_ids: Iterable[int]) -> int:
        """Delete outbox items by id. Returns how many were deleted."""
        pass

    @abstractmethod
    def get_schema_version(self) -> int:
        """Return the applied schema version."""
        pass
