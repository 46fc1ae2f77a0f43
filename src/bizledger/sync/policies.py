"""Per-entity-class conflict policies applied by the remote reconciler.

Accounts and transactions are mutable and use upsert-overwrite. Ledger
entries and payments are append-only and use append-dedupe: a replayed
``client_id`` leaves the stored record untouched.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from bizledger.database.base import Database, Entity
from bizledger.domain.entities import EntityClass
from bizledger.sync.mappers import (
    record_to_account,
    record_to_ledger_entry,
    record_to_payment,
    record_to_transaction,
)
from bizledger.sync.schemas import WireModel


@dataclass(frozen=True)
class ApplyOutcome:
    """Result of applying one record to the store."""

    entity: Entity
    created: bool
    previous: Optional[Entity] = None


class ConflictPolicy(ABC):
    """How an incoming record is merged with what the store already has."""

    def __init__(self, entity_class: EntityClass):
        self.entity_class = entity_class

    @abstractmethod
    def apply(self, db: Database, record: WireModel) -> ApplyOutcome:
        """Write the record (or not) and report what happened."""
        pass


class UpsertOverwrite(ConflictPolicy):
    """Insert if absent, otherwise overwrite the client-authoritative fields."""

    def __init__(self, entity_class: EntityClass, to_entity: Callable[[WireModel, Optional[Entity]], Entity]):
        super().__init__(entity_class)
        self.to_entity = to_entity

    def apply(self, db: Database, record: WireModel) -> ApplyOutcome:
        existing = db.get(self.entity_class, record.client_id)
        entity = self.to_entity(record, existing)
        db.put(entity)
        return ApplyOutcome(entity=entity, created=existing is None, previous=existing)


class AppendDedupe(ConflictPolicy):
    """Insert if absent, otherwise return the stored record unchanged."""

    def __init__(self, entity_class: EntityClass, to_entity: Callable[[WireModel], Entity]):
        super().__init__(entity_class)
        self.to_entity = to_entity

    def apply(self, db: Database, record: WireModel) -> ApplyOutcome:
        existing = db.get(self.entity_class, record.client_id)
        if existing is not None:
            return ApplyOutcome(entity=existing, created=False, previous=existing)
        entity = self.to_entity(record)
        db.put(entity)
        return ApplyOutcome(entity=entity, created=True)


POLICIES: dict[EntityClass, ConflictPolicy] = {
    EntityClass.ACCOUNT: UpsertOverwrite(EntityClass.ACCOUNT, record_to_account),
    EntityClass.TRANSACTION: UpsertOverwrite(EntityClass.TRANSACTION, record_to_transaction),
    EntityClass.LEDGER: AppendDedupe(EntityClass.LEDGER, record_to_ledger_entry),
    EntityClass.PAYMENT: AppendDedupe(EntityClass.PAYMENT, record_to_payment),
}
