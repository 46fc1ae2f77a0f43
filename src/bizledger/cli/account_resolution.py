"""CLI helpers for resolving account and transaction references."""

from __future__ import annotations

import click
from bizledger.domain.account import AccountService
from bizledger.domain.entities import Account, Transaction
from bizledger.domain.transaction import TransactionService
from bizledger.utils.account_resolver import resolve_account


def resolve_account_or_exit(
    ctx: click.Context, account_service: AccountService, account: str
) -> Account:
    """Resolve an account reference, or exit with a CLI error.

    This keeps error messaging and exit behavior consistent across commands.
    """
    try:
        return resolve_account(account_service, account)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        ctx.exit(1)


def resolve_transaction_or_exit(
    ctx: click.Context, transaction_service: TransactionService, reference: str
) -> Transaction:
    """Resolve a transaction by client id or unique client id prefix."""
    txn = transaction_service.get_transaction(reference)
    if txn is not None:
        return txn
    matches = [
        t for t in transaction_service.list_transactions()
        if t.client_id.startswith(reference)
    ]
    if len(matches) == 1:
        return matches[0]
    if matches:
        click.echo(f"Error: Transaction '{reference}' is ambiguous", err=True)
    else:
        click.echo(f"Error: Transaction '{reference}' not found", err=True)
    ctx.exit(1)
