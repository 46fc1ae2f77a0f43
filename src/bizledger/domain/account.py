"""Account domain service."""

from dataclasses import replace
from datetime import datetime, UTC
from typing import Optional

from bizledger.database.base import Database
from bizledger.domain.entities import (
    Account as AccountEntity,
    AccountKind,
    AccountStatus,
    EntityClass,
    OutboxAction,
)
from bizledger.domain.errors import ConflictError, NotFoundError, ValidationError, account_not_found
from bizledger.sync.outbox import Outbox
from bizledger.utils.ids import new_client_id


class AccountService:
    """Service for managing customer and supplier accounts."""

    def __init__(self, db: Database, outbox: Optional[Outbox] = None):
        """Initialize account service.

        Args:
            db: Database instance
            outbox: Outbox shared with the sync engine (created if omitted)
        """
        self.db = db
        self.outbox = outbox if outbox is not None else Outbox(db)

    def create_account(
        self,
        name: str,
        phone: str = "",
        address: str = "",
        kind: AccountKind = AccountKind.CUSTOMER,
        client_id: Optional[str] = None,
    ) -> AccountEntity:
        """Create a new account.

        Args:
            name: Display name
            phone: Contact phone number, used for notifications
            address: Postal address
            kind: Customer or supplier
            client_id: Client id to use (generated if omitted)

        Returns:
            The created account

        Raises:
            ValidationError: If the name is empty
            ConflictError: If another account already uses the phone number
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Account name is required")
        phone = (phone or "").strip()
        self._check_phone_unique(phone)

        now = datetime.now(UTC)
        account = AccountEntity(
            client_id=client_id or new_client_id(),
            name=name,
            phone=phone,
            address=(address or "").strip(),
            kind=AccountKind(kind),
            created_at=now,
            updated_at=now,
        )
        with self.db.unit_of_work():
            self.db.put(account)
            self.outbox.enqueue(EntityClass.ACCOUNT, account.client_id, OutboxAction.CREATE)
        return account

    def get_account(self, client_id: str) -> Optional[AccountEntity]:
        """Get account by client id.

        Returns:
            Account entity or None if not found
        """
        return self.db.get(EntityClass.ACCOUNT, client_id)

    def require_account(self, client_id: str) -> AccountEntity:
        """Get account by client id or raise NotFoundError."""
        account = self.get_account(client_id)
        if account is None:
            raise NotFoundError(account_not_found(client_id))
        return account

    def list_accounts(self, include_inactive: bool = True) -> list[AccountEntity]:
        """List accounts ordered by name."""
        accounts = self.db.list_accounts()
        if include_inactive:
            return accounts
        return [acc for acc in accounts if acc.status == AccountStatus.ACTIVE]

    def update_account(
        self,
        client_id: str,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        address: Optional[str] = None,
        kind: Optional[AccountKind] = None,
    ) -> AccountEntity:
        """Update account profile fields. Fields left as None are unchanged.

        Raises:
            NotFoundError: If the account does not exist
            ValidationError: If the new name is empty
            ConflictError: If another account already uses the new phone number
        """
        account = self.require_account(client_id)
        changes = {}
        if name is not None:
            if not name.strip():
                raise ValidationError("Account name is required")
            changes["name"] = name.strip()
        if phone is not None:
            self._check_phone_unique(phone.strip(), exclude=client_id)
            changes["phone"] = phone.strip()
        if address is not None:
            changes["address"] = address.strip()
        if kind is not None:
            changes["kind"] = AccountKind(kind)
        if not changes:
            return account
        return self._save_update(account, **changes)

    def set_status(self, client_id: str, status: AccountStatus) -> AccountEntity:
        """Activate or deactivate an account.

        Accounts are never deleted; deactivation keeps their ledger intact.
        """
        account = self.require_account(client_id)
        status = AccountStatus(status)
        if account.status == status:
            return account
        return self._save_update(account, status=status)

    def top_debtors(self, limit: int = 5) -> list[AccountEntity]:
        """Accounts with the highest positive cached balance."""
        debtors = [acc for acc in self.db.list_accounts() if acc.balance > 0]
        debtors.sort(key=lambda acc: acc.balance, reverse=True)
        return debtors[:limit]

    def _save_update(self, account: AccountEntity, **changes) -> AccountEntity:
        # Re-read inside the unit of work so the cached balance is current
        with self.db.unit_of_work():
            current = self.require_account(account.client_id)
            updated = replace(
                current,
                revision=current.revision + 1,
                synced=False,
                updated_at=datetime.now(UTC),
                **changes,
            )
            self.db.put(updated)
            self.outbox.enqueue(EntityClass.ACCOUNT, updated.client_id, OutboxAction.UPDATE)
        return updated

    def _check_phone_unique(self, phone: str, exclude: Optional[str] = None) -> None:
        if not phone:
            return
        for acc in self.db.list_accounts():
            if acc.phone == phone and acc.client_id != exclude:
                raise ConflictError(f"Phone number {phone} already belongs to account '{acc.name}'")
