"""Client sync engine.

State machine::

    IDLE -> COLLECTING -> SENDING -> APPLYING -> IDLE
                              |
                              +-- transport failure --> IDLE (retry scheduled)
                                                        FAILED (retries exhausted)

A run takes one snapshot of everything unsynced (plus whatever the outbox
references), sends it as a single batch, and on a response marks accepted
records synced and clears the outbox items the snapshot covered. Records the
remote store rejected stay unsynced and keep their outbox items.

Local edits made while a batch is in flight are not lost: an entity is only
marked synced if its revision is still the one that was sent, and only
outbox items up to the highest id seen in the snapshot are cleared.

Runs never overlap. A trigger that arrives during a run sets a rerun flag and
the active run loops once more. Delayed work (debounce, retries) goes through
a :class:`~bizledger.sync.scheduler.QueueScheduler` owned by the caller.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import ValidationError as SchemaError

from bizledger.config import SyncConfig
from bizledger.database.base import Database, Entity
from bizledger.domain.entities import EntityClass, OutboxAction, OutboxItem
from bizledger.domain.errors import TransportError
from bizledger.domain.notification import NotificationService
from bizledger.sync.connectivity import ConnectivityMonitor
from bizledger.sync.mappers import entity_to_record
from bizledger.sync.outbox import Outbox
from bizledger.sync.reconciler import describe_schema_error
from bizledger.sync.scheduler import QueueScheduler, ScheduledCall
from bizledger.sync.schemas import RecordError, SyncResponse
from bizledger.sync.transport import Transport

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    SENDING = "sending"
    APPLYING = "applying"
    FAILED = "failed"


class RunStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    OFFLINE = "offline"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncRunResult:
    """Outcome of one sync run, handed to listeners."""

    status: RunStatus
    synced: dict[str, int] = field(default_factory=dict)
    errors: tuple[RecordError, ...] = ()
    notified: tuple[str, ...] = ()
    attempt: int = 0
    exhausted: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in (RunStatus.OK, RunStatus.SKIPPED)


@dataclass
class Snapshot:
    """Entities collected for one batch, and the outbox items they cover."""

    entities: dict[EntityClass, dict[str, Entity]]
    outbox_items: list[OutboxItem]

    @property
    def max_outbox_id(self) -> Optional[int]:
        return self.outbox_items[-1].id if self.outbox_items else None

    def is_empty(self) -> bool:
        return not any(self.entities.values())

    def to_batch(self) -> dict[str, Any]:
        return {
            entity_class.value: [
                entity_to_record(entity).to_json()
                for entity in self.entities[entity_class].values()
            ]
            for entity_class in EntityClass
        }


SyncListener = Callable[[SyncRunResult], None]


def pending_counts(db: Database) -> dict[str, int]:
    """Unsynced entities per class."""
    return {cls.value: db.count_unsynced(cls) for cls in EntityClass}


class SyncEngine:
    """Offline-first sync of the local store with a remote reconciler."""

    def __init__(
        self,
        db: Database,
        transport: Transport,
        config: Optional[SyncConfig] = None,
        outbox: Optional[Outbox] = None,
        scheduler: Optional[QueueScheduler] = None,
        connectivity: Optional[ConnectivityMonitor] = None,
        notifications: Optional[NotificationService] = None,
    ):
        """Initialize the sync engine.

        Args:
            db: Local store
            transport: Carrier to the remote reconciler
            config: Retry, debounce and timeout settings (defaults if omitted)
            outbox: Outbox shared with the domain services; the engine
                listens to it for the debounced trigger
            scheduler: Scheduler for debounce and retries
            connectivity: Monitor whose transitions trigger syncs; without
                one the engine assumes it is online
            notifications: Dispatches notifications the remote store asks for
        """
        self.db = db
        self.transport = transport
        self.config = config or SyncConfig()
        self.outbox = outbox if outbox is not None else Outbox(db)
        self.scheduler = scheduler if scheduler is not None else QueueScheduler()
        self.connectivity = connectivity
        self.notifications = notifications

        self._state = SyncState.IDLE
        self._running = False
        self._rerun = False
        self._attempt = 0
        self._retry_call: Optional[ScheduledCall] = None
        self._debounce_call: Optional[ScheduledCall] = None
        self._listeners: list[SyncListener] = []
        self.last_error: Optional[str] = None
        self.last_result: Optional[SyncRunResult] = None

        self.outbox.add_listener(self._on_enqueue)
        if connectivity is not None:
            connectivity.subscribe(self.on_connectivity_change)

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def online(self) -> bool:
        return self.connectivity is None or self.connectivity.is_online

    @property
    def attempt(self) -> int:
        """Consecutive failed runs since the last success or reset."""
        return self._attempt

    def subscribe(self, listener: SyncListener) -> None:
        """Register a callback receiving every :class:`SyncRunResult`."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: SyncListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # Triggers
    def trigger_manual(self) -> Optional[SyncRunResult]:
        """Sync now, starting over with a fresh retry budget."""
        self._reset_retries()
        return self.request_sync()

    def on_connectivity_change(self, online: bool) -> None:
        """Sync as soon as connectivity is restored."""
        if online:
            logger.info("Connectivity restored; starting sync")
            self._reset_retries()
            self.request_sync()

    def _on_enqueue(self, entity_class: EntityClass, client_id: str, action: OutboxAction) -> None:
        if not self.online or self._state == SyncState.FAILED:
            return
        if self._debounce_call is not None:
            self._debounce_call.cancel()
        self._debounce_call = self.scheduler.call_later(
            self.config.debounce_seconds, self._debounced_sync
        )

    def _debounced_sync(self) -> None:
        self._debounce_call = None
        self.request_sync()

    def _retry_sync(self) -> None:
        self._retry_call = None
        self.request_sync()

    # Running
    def request_sync(self) -> Optional[SyncRunResult]:
        """Run a sync unless one is already in flight.

        Returns:
            The result of the last loop of the run, or None if a run was
            already active (it will loop once more)
        """
        if self._running:
            self._rerun = True
            logger.debug("Sync already running; rerun requested")
            return None
        if not self.online:
            return self._finish(SyncRunResult(status=RunStatus.OFFLINE))

        self._running = True
        try:
            while True:
                self._rerun = False
                result = self._run_once()
                if not (self._rerun and result.ok):
                    break
        finally:
            self._running = False
            if self._state not in (SyncState.IDLE, SyncState.FAILED):
                self._state = SyncState.IDLE
        return result

    def _run_once(self) -> SyncRunResult:
        self._state = SyncState.COLLECTING
        snapshot = self._collect()
        if snapshot.is_empty():
            self._state = SyncState.IDLE
            if snapshot.outbox_items:
                self.outbox.acknowledge(snapshot.outbox_items)
            return self._finish(SyncRunResult(status=RunStatus.SKIPPED))

        self._state = SyncState.SENDING
        try:
            raw = self.transport.send(snapshot.to_batch())
            response = SyncResponse.model_validate(raw)
        except TransportError as e:
            return self._handle_failure(str(e))
        except SchemaError as e:
            return self._handle_failure(f"Invalid sync response: {describe_schema_error(e)}")

        self._state = SyncState.APPLYING
        self._apply(snapshot, response)
        self._reset_retries()
        self._state = SyncState.IDLE

        synced = response.synced.model_dump()
        logger.info(
            "Sync complete: %s accepted, %d rejected",
            ", ".join(f"{count} {name}" for name, count in synced.items()),
            len(response.errors),
        )
        for err in response.errors:
            logger.warning(
                "Remote store rejected %s %s: %s",
                err.entity_class.value, err.client_id, err.error,
            )
        notified = self._dispatch_notifications(response.transactions_needing_notification)
        return self._finish(SyncRunResult(
            status=RunStatus.OK,
            synced=synced,
            errors=tuple(response.errors),
            notified=tuple(notified),
        ))

    def _collect(self) -> Snapshot:
        items = self.outbox.pending()
        entities: dict[EntityClass, dict[str, Entity]] = {cls: {} for cls in EntityClass}
        for entity_class in EntityClass:
            for entity in self.db.list_unsynced(entity_class):
                entities[entity_class][entity.client_id] = entity
        for item in items:
            if item.client_id in entities[item.entity_class]:
                continue
            entity = self.db.get(item.entity_class, item.client_id)
            if entity is None:
                logger.warning(
                    "Outbox references missing %s %s", item.entity_class.value, item.client_id
                )
                continue
            entities[item.entity_class][item.client_id] = entity
        snapshot = Snapshot(entities=entities, outbox_items=items)
        logger.debug(
            "Collected %d records, outbox up to #%s",
            sum(len(e) for e in entities.values()), snapshot.max_outbox_id,
        )
        return snapshot

    def _apply(self, snapshot: Snapshot, response: SyncResponse) -> None:
        failed = {cls: response.failed_ids(cls) for cls in EntityClass}
        with self.db.unit_of_work():
            for entity_class, entities in snapshot.entities.items():
                for client_id, entity in entities.items():
                    if client_id in failed[entity_class]:
                        continue
                    if not self.db.mark_synced(
                        entity_class, client_id, getattr(entity, "revision", None)
                    ):
                        logger.debug(
                            "%s %s changed during sync; left unsynced",
                            entity_class.value, client_id,
                        )
            self.outbox.acknowledge(
                item for item in snapshot.outbox_items
                if item.client_id not in failed[item.entity_class]
            )
            server_ids = response.server_ids.get(EntityClass.ACCOUNT.value, {})
            for client_id, server_id in server_ids.items():
                self.db.set_server_id(client_id, server_id)

    def _handle_failure(self, message: str) -> SyncRunResult:
        self._attempt += 1
        self.last_error = message
        if self._attempt > self.config.max_attempts:
            self._state = SyncState.FAILED
            logger.error(
                "Sync failed after %d attempts, waiting for a manual trigger: %s",
                self._attempt, message,
            )
            return self._finish(SyncRunResult(
                status=RunStatus.FAILED, attempt=self._attempt, exhausted=True, error=message,
            ))

        delay = self.config.retry_delay(self._attempt)
        logger.warning(
            "Sync attempt failed (%s); retry %d/%d in %.1fs",
            message, self._attempt, self.config.max_attempts, delay,
        )
        if self._retry_call is not None:
            self._retry_call.cancel()
        self._retry_call = self.scheduler.call_later(delay, self._retry_sync)
        self._state = SyncState.IDLE
        return self._finish(SyncRunResult(
            status=RunStatus.FAILED, attempt=self._attempt, error=message,
        ))

    def _reset_retries(self) -> None:
        self._attempt = 0
        self.last_error = None
        if self._retry_call is not None:
            self._retry_call.cancel()
            self._retry_call = None
        if self._state == SyncState.FAILED:
            self._state = SyncState.IDLE

    def _dispatch_notifications(self, transaction_ids: list[str]) -> list[str]:
        if self.notifications is None or not transaction_ids:
            return []
        return self.notifications.dispatch_many(transaction_ids)

    def _finish(self, result: SyncRunResult) -> SyncRunResult:
        self.last_result = result
        for listener in list(self._listeners):
            try:
                listener(result)
            except Exception:
                logger.exception("Sync listener failed")
        return result

    def status(self) -> dict[str, Any]:
        """Snapshot of the sync state for display."""
        return {
            "state": self._state.value,
            "online": self.online,
            "pending": pending_counts(self.db),
            "outbox": len(self.outbox),
            "attempt": self._attempt,
            "last_error": self.last_error,
        }
