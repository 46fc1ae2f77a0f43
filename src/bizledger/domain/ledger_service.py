"""Ledger domain service: adjustments, balance queries and repair."""

import logging
from decimal import Decimal
from typing import Optional

from bizledger.database.base import Database
from bizledger.domain.entities import (
    BalanceReport,
    Direction,
    DriftReport,
    EntityClass,
    LedgerEntry,
    OutboxAction,
)
from bizledger.domain.errors import NotFoundError, account_not_found
from bizledger.domain.ledger import compute_balance, detect_drift, manual_adjustment, signed_amount
from bizledger.sync.outbox import Outbox

logger = logging.getLogger(__name__)


class LedgerService:
    """Service for the append-only ledger.

    Balance queries here always recompute from ledger entries; the cached
    balance on the account is only read to detect drift. Drift is reported,
    never fixed implicitly: call :meth:`recalculate` to repair it.
    """

    def __init__(self, db: Database, outbox: Optional[Outbox] = None):
        self.db = db
        self.outbox = outbox if outbox is not None else Outbox(db)

    def record_adjustment(
        self,
        account_id: str,
        direction: Direction,
        amount: Decimal,
        description: str = "",
    ) -> LedgerEntry:
        """Append a manual adjustment and update the cached balance.

        Raises:
            NotFoundError: If the account does not exist
            ValidationError: If the amount is not positive
        """
        self._require_account(account_id)
        entry = manual_adjustment(account_id, direction, amount, description)
        with self.db.unit_of_work():
            self.db.put(entry)
            self.outbox.enqueue(EntityClass.LEDGER, entry.client_id, OutboxAction.CREATE)
            self.db.apply_balance_delta(account_id, signed_amount(entry))
        return entry

    def list_entries(self, account_id: str) -> list[LedgerEntry]:
        """Ledger history of an account, newest first."""
        return list(reversed(self.db.list_ledger_entries(account_id)))

    def balance(self, account_id: str) -> Decimal:
        """Balance derived from the account's ledger entries."""
        return compute_balance(self.db.list_ledger_entries(account_id))

    def balance_report(self, account_id: str) -> BalanceReport:
        """Full recomputation of an account's balance, for audit and repair."""
        self._require_account(account_id)
        entries = self.db.list_ledger_entries(account_id)
        return BalanceReport(
            account_id=account_id,
            balance=compute_balance(entries),
            entry_count=len(entries),
        )

    def recalculate(self, account_id: str) -> Decimal:
        """Overwrite the cached balance with the recomputed one.

        Returns:
            The recomputed balance
        """
        with self.db.unit_of_work():
            account = self._require_account(account_id)
            balance = self.balance(account_id)
            if account.balance != balance:
                logger.info(
                    "Repairing balance of account %s: cached %s, recomputed %s",
                    account_id, account.balance, balance,
                )
            self.db.set_account_balance(account_id, balance)
        return balance

    def recalculate_all(self) -> dict[str, Decimal]:
        """Recalculate every account. Returns balances by account id."""
        return {acc.client_id: self.recalculate(acc.client_id) for acc in self.db.list_accounts()}

    def check_drift(self, account_id: str) -> Optional[DriftReport]:
        """Compare one account's cached balance with its recomputation."""
        account = self._require_account(account_id)
        report = detect_drift(account, self.db.list_ledger_entries(account_id))
        if report is not None:
            logger.warning(
                "Balance drift on account %s: cached %s, recomputed %s",
                account_id, report.cached, report.recomputed,
            )
        return report

    def find_drift(self) -> list[DriftReport]:
        """Drift reports for all accounts whose cache is wrong."""
        reports = []
        for account in self.db.list_accounts():
            report = self.check_drift(account.client_id)
            if report is not None:
                reports.append(report)
        return reports

    def _require_account(self, account_id: str):
        account = self.db.get(EntityClass.ACCOUNT, account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        return account
