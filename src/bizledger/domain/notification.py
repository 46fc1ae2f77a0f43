"""Boundary to the external notification collaborator.

Message content and delivery channel live outside bizledger. The core only
hands over the transaction summary and the account's contact address, and
records whether dispatch succeeded.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Iterable, Optional

from bizledger.database.base import Database
from bizledger.domain.entities import EntityClass, LineItem, TransactionStatus
from bizledger.domain.transaction import TransactionService
from bizledger.sync.outbox import Outbox

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationPayload:
    """What the notifier gets to see of a transaction."""

    id: str
    line_items: tuple[LineItem, ...]
    total: Decimal
    status: TransactionStatus


# (payload, contact address) -> whether the notification was dispatched
Notifier = Callable[[NotificationPayload, str], bool]


class NotificationService:
    """Dispatch transaction notifications through an external notifier."""

    def __init__(self, db: Database, notifier: Notifier, outbox: Optional[Outbox] = None):
        self.db = db
        self.notifier = notifier
        self.transactions = TransactionService(db, outbox)

    def dispatch(self, transaction_id: str) -> bool:
        """Notify the account of a transaction and record the outcome.

        Returns:
            True if the notifier reported success
        """
        txn = self.transactions.get_transaction(transaction_id)
        if txn is None:
            logger.warning("Cannot notify unknown transaction %s", transaction_id)
            return False
        if txn.is_draft or txn.notified:
            return False
        account = self.db.get(EntityClass.ACCOUNT, txn.account_id)
        if account is None or not account.phone:
            logger.warning("No contact address for transaction %s; notification skipped", transaction_id)
            return False

        payload = NotificationPayload(
            id=txn.client_id,
            line_items=txn.line_items,
            total=txn.total,
            status=txn.status,
        )
        if not self.notifier(payload, account.phone):
            logger.warning("Notifier declined transaction %s", transaction_id)
            return False
        self.transactions.mark_notified(transaction_id)
        logger.info("Notification dispatched for transaction %s", transaction_id)
        return True

    def dispatch_many(self, transaction_ids: Iterable[str]) -> list[str]:
        """Dispatch several notifications. A failing notifier call does not
        stop the others.

        Returns:
            Ids of the transactions that were notified
        """
        dispatched = []
        for transaction_id in transaction_ids:
            try:
                if self.dispatch(transaction_id):
                    dispatched.append(transaction_id)
            except Exception:
                logger.exception("Notification failed for transaction %s", transaction_id)
        return dispatched
