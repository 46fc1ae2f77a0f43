"""Remote reconciler: applies a client batch to the remote store.

Records are applied class by class (accounts, transactions, ledger, payments)
so references inside one batch resolve in dependency order. Each record runs
in its own savepoint; a rejected record is reported in the response and
leaves nothing behind, while the rest of the batch commits together.

Replaying a batch is idempotent: mutable records converge to the same
values and append-only records are deduplicated by client id, so cached
balances only move when a ledger entry is inserted for the first time.
"""

import logging
from typing import Any, Mapping, Optional

from pydantic import ValidationError as SchemaError

from bizledger.database.base import Database
from bizledger.domain.entities import EntityClass, TransactionStatus
from bizledger.domain.errors import DomainError, UnresolvedReferenceError, ValidationError
from bizledger.domain.ledger import signed_amount
from bizledger.sync.policies import POLICIES, ApplyOutcome, ConflictPolicy
from bizledger.sync.schemas import RECORD_MODELS, RecordError, SyncBatch, SyncResponse, WireModel

logger = logging.getLogger(__name__)

APPLY_ORDER = (
    EntityClass.ACCOUNT,
    EntityClass.TRANSACTION,
    EntityClass.LEDGER,
    EntityClass.PAYMENT,
)


def describe_schema_error(error: SchemaError) -> str:
    """Flatten a pydantic error into one readable line."""
    parts = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"])
        parts.append(f"{location}: {err['msg']}" if location else err["msg"])
    return "; ".join(parts)


def _raw_client_id(raw: Any) -> Optional[str]:
    if not isinstance(raw, Mapping):
        return None
    client_id = raw.get("clientId", raw.get("client_id"))
    return str(client_id) if client_id is not None else None


class Reconciler:
    """Apply sync batches to a store using per-class conflict policies."""

    def __init__(self, db: Database, policies: Optional[dict[EntityClass, ConflictPolicy]] = None):
        self.db = db
        self.policies = policies if policies is not None else POLICIES

    def reconcile(self, payload: Any) -> SyncResponse:
        """Apply a batch and build the response.

        Args:
            payload: Decoded JSON batch, keyed by entity class

        Returns:
            Counts of accepted records, per-record errors, transactions that
            need a notification, and server ids of accepted accounts

        Raises:
            ValidationError: If the payload is not a batch at all
        """
        try:
            batch = SyncBatch.model_validate(payload)
        except SchemaError as e:
            raise ValidationError(f"Malformed sync batch: {describe_schema_error(e)}") from e

        response = SyncResponse()
        with self.db.unit_of_work():
            for entity_class in APPLY_ORDER:
                for raw in batch.records(entity_class):
                    self._apply_record(entity_class, raw, response)

        logger.info(
            "Reconciled batch: %d accepted, %d rejected",
            response.synced.total(), len(response.errors),
        )
        return response

    def _apply_record(self, entity_class: EntityClass, raw: Any, response: SyncResponse) -> None:
        client_id = _raw_client_id(raw)
        try:
            record = RECORD_MODELS[entity_class].model_validate(raw)
            client_id = record.client_id
            with self.db.savepoint():
                self._check_references(entity_class, record)
                outcome = self.policies[entity_class].apply(self.db, record)
                if entity_class == EntityClass.LEDGER and outcome.created:
                    self.db.apply_balance_delta(record.account_id, signed_amount(outcome.entity))
                server_id = None
                if entity_class == EntityClass.ACCOUNT:
                    server_id = self._ensure_server_id(outcome)
        except SchemaError as e:
            self._reject(response, entity_class, client_id, describe_schema_error(e))
            return
        except DomainError as e:
            self._reject(response, entity_class, client_id, str(e))
            return

        counts = response.synced
        setattr(counts, entity_class.value, getattr(counts, entity_class.value) + 1)
        if entity_class == EntityClass.ACCOUNT:
            response.server_ids.setdefault(EntityClass.ACCOUNT.value, {})[client_id] = server_id
        elif entity_class == EntityClass.TRANSACTION and self._needs_notification(record, outcome):
            if client_id not in response.transactions_needing_notification:
                response.transactions_needing_notification.append(client_id)

    def _check_references(self, entity_class: EntityClass, record: WireModel) -> None:
        if entity_class == EntityClass.ACCOUNT:
            return
        if self.db.get(EntityClass.ACCOUNT, record.account_id) is None:
            raise UnresolvedReferenceError(f"Unknown account {record.account_id}")
        transaction_id = getattr(record, "transaction_id", None)
        if transaction_id is None:
            return
        txn = self.db.get(EntityClass.TRANSACTION, transaction_id)
        if txn is None:
            raise UnresolvedReferenceError(f"Unknown transaction {transaction_id}")
        if txn.account_id != record.account_id:
            raise UnresolvedReferenceError(
                f"Transaction {transaction_id} does not belong to account {record.account_id}"
            )

    def _ensure_server_id(self, outcome: ApplyOutcome) -> int:
        account = outcome.entity
        if account.server_id is not None:
            return account.server_id
        server_id = self.db.get_row_id(EntityClass.ACCOUNT, account.client_id)
        self.db.set_server_id(account.client_id, server_id)
        return server_id

    @staticmethod
    def _needs_notification(record: WireModel, outcome: ApplyOutcome) -> bool:
        if outcome.entity.status == TransactionStatus.DRAFT or record.notified:
            return False
        return outcome.previous is None or not outcome.previous.notified

    @staticmethod
    def _reject(
        response: SyncResponse, entity_class: EntityClass, client_id: Optional[str], message: str
    ) -> None:
        logger.warning("Rejected %s record %s: %s", entity_class.value, client_id, message)
        response.errors.append(
            RecordError(entity_class=entity_class, client_id=client_id, error=message)
        )
