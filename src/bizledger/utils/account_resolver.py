"""Utility for resolving account references to client ids."""

from bizledger.domain.account import AccountService
from bizledger.domain.entities import Account
from bizledger.domain.errors import NotFoundError, ValidationError

MIN_PREFIX_LENGTH = 4


def resolve_account(account_service: AccountService, account: str) -> Account:
    """Resolve an account reference to the account.

    The reference is tried, in order, as a full client id, a unique client
    id prefix (at least four characters), an exact name and a
    case-insensitive name.

    Args:
        account_service: AccountService instance
        account: Client id, client id prefix or account name

    Returns:
        The account

    Raises:
        NotFoundError: If nothing matches
        ValidationError: If the reference matches more than one account
    """
    reference = account.strip()
    if not reference:
        raise ValidationError("Account reference is empty")

    found = account_service.get_account(reference)
    if found is not None:
        return found

    accounts = account_service.list_accounts()
    if len(reference) >= MIN_PREFIX_LENGTH:
        matches = [acc for acc in accounts if acc.client_id.startswith(reference)]
        if matches:
            return _single(matches, reference)

    matches = [acc for acc in accounts if acc.name == reference]
    if not matches:
        matches = [acc for acc in accounts if acc.name.casefold() == reference.casefold()]
    if matches:
        return _single(matches, reference)

    raise NotFoundError(f"Account '{reference}' not found")


def _single(matches: list[Account], reference: str) -> Account:
    if len(matches) > 1:
        candidates = ", ".join(f"{acc.name} ({acc.client_id[:8]})" for acc in matches)
        raise ValidationError(f"Account '{reference}' is ambiguous: {candidates}")
    return matches[0]
