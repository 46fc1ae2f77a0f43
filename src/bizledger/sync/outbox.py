"""Outbox (sync queue).

Durable, append-only record of local mutations that still need remote
acknowledgement. Items are written through the entity store, so callers
enqueue inside the same unit of work as the mutation they describe. Items are
only deleted by :meth:`Outbox.acknowledge`, which the sync engine calls after
a completed run.
"""

import logging
from typing import Callable, Iterable, Optional

from bizledger.database.base import Database
from bizledger.domain.entities import EntityClass, OutboxAction, OutboxItem

logger = logging.getLogger(__name__)

EnqueueListener = Callable[[EntityClass, str, OutboxAction], None]


class Outbox:
    """Queue of pending mutations backed by the entity store."""

    def __init__(self, db: Database):
        self.db = db
        self._listeners: list[EnqueueListener] = []

    def enqueue(
        self,
        entity_class: EntityClass,
        client_id: str,
        action: OutboxAction = OutboxAction.CREATE,
    ) -> int:
        """Record that an entity needs to reach the remote store.

        Returns:
            The outbox item id
        """
        item_id = self.db.enqueue_outbox(entity_class, client_id, action)
        logger.debug("Enqueued %s %s %s (#%d)", action.value, entity_class.value, client_id, item_id)
        for listener in list(self._listeners):
            listener(entity_class, client_id, action)
        return item_id

    def add_listener(self, listener: EnqueueListener) -> None:
        """Register a callback fired after every enqueue."""
        self._listeners.append(listener)

    def remove_listener(self, listener: EnqueueListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def pending(self, max_id: Optional[int] = None) -> list[OutboxItem]:
        """Return pending items in FIFO order without consuming them."""
        return self.db.list_outbox(max_id=max_id)

    def acknowledge(self, items: Iterable[OutboxItem]) -> int:
        """Delete items the remote store confirmed. Returns how many."""
        return self.db.delete_outbox(item.id for item in items)

    def __len__(self) -> int:
        return len(self.db.list_outbox())
