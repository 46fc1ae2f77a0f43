"""Account management commands."""

import click
from bizledger.cli.account_resolution import resolve_account_or_exit
from bizledger.cli.error_handling import handle_domain_error
from bizledger.domain.account import AccountService
from bizledger.domain.entities import AccountKind, AccountStatus
from bizledger.domain.errors import DomainError
from bizledger.domain.ledger_service import LedgerService


@click.group()
def account_group():
    """Manage customer and supplier accounts."""
    pass


@account_group.command("create")
@click.argument("name", metavar="ACCOUNT_NAME")
@click.option("--phone", default="", help="Contact phone number (used for notifications)")
@click.option("--address", default="", help="Postal address")
@click.option(
    "--kind",
    type=click.Choice([k.value for k in AccountKind]),
    default=AccountKind.CUSTOMER.value,
    show_default=True,
    help="Account kind",
)
@click.pass_context
def create_account(ctx, name: str, phone: str, address: str, kind: str):
    """Create a new account.

    Examples:
        bizledger account create "Ravi Traders" --phone 9876543210
        bizledger account create "Grain Wholesale" --kind supplier
    """
    db = ctx.obj["db"]
    service = AccountService(db)

    try:
        acc = service.create_account(name=name, phone=phone, address=address, kind=AccountKind(kind))
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created account '{acc.name}' (ID: {acc.client_id})")


@account_group.command("list")
@click.option("--all", "include_inactive", is_flag=True, help="Include inactive accounts")
@click.pass_context
def list_accounts(ctx, include_inactive: bool):
    """List accounts with their cached balances."""
    db = ctx.obj["db"]
    service = AccountService(db)

    accounts = service.list_accounts(include_inactive=include_inactive)
    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\nAccounts:")
    click.echo("-" * 78)
    for acc in accounts:
        marker = "" if acc.status == AccountStatus.ACTIVE else " (inactive)"
        synced = "" if acc.synced else " *"
        click.echo(
            f"{acc.client_id[:8]} | {acc.name:24s} | {acc.kind.value:8s} | "
            f"{acc.balance:>12,.2f}{synced}{marker}"
        )


@account_group.command("show")
@click.argument("account", metavar="ACCOUNT")
@click.pass_context
def show_account(ctx, account: str):
    """Show an account and its balance.

    ACCOUNT can be an account name, ID or ID prefix.
    """
    db = ctx.obj["db"]
    service = AccountService(db)
    acc = resolve_account_or_exit(ctx, service, account)
    report = LedgerService(db).balance_report(acc.client_id)

    click.echo(f"Account:   {acc.name}")
    click.echo(f"ID:        {acc.client_id}")
    if acc.server_id is not None:
        click.echo(f"Server ID: {acc.server_id}")
    click.echo(f"Kind:      {acc.kind.value}")
    click.echo(f"Status:    {acc.status.value}")
    if acc.phone:
        click.echo(f"Phone:     {acc.phone}")
    if acc.address:
        click.echo(f"Address:   {acc.address}")
    click.echo(f"Balance:   {report.balance:,.2f} ({report.entry_count} ledger entries)")
    click.echo(f"Synced:    {'yes' if acc.synced else 'no'}")


@account_group.command("update")
@click.argument("account", metavar="ACCOUNT")
@click.option("--name", help="New name")
@click.option("--phone", help="New phone number")
@click.option("--address", help="New address")
@click.option("--kind", type=click.Choice([k.value for k in AccountKind]), help="New kind")
@click.pass_context
def update_account(ctx, account: str, name, phone, address, kind):
    """Update account details.

    Examples:
        bizledger account update "Ravi Traders" --phone 9123456780
    """
    db = ctx.obj["db"]
    service = AccountService(db)
    acc = resolve_account_or_exit(ctx, service, account)

    try:
        updated = service.update_account(
            acc.client_id,
            name=name,
            phone=phone,
            address=address,
            kind=AccountKind(kind) if kind else None,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Updated account '{updated.name}'")


def _set_status(ctx, account: str, status: AccountStatus) -> None:
    db = ctx.obj["db"]
    service = AccountService(db)
    acc = resolve_account_or_exit(ctx, service, account)
    service.set_status(acc.client_id, status)
    click.echo(f"Account '{acc.name}' is now {status.value}")


@account_group.command("deactivate")
@click.argument("account", metavar="ACCOUNT")
@click.pass_context
def deactivate_account(ctx, account: str):
    """Deactivate an account. Its ledger stays intact; no new transactions
    can be recorded against it."""
    _set_status(ctx, account, AccountStatus.INACTIVE)


@account_group.command("activate")
@click.argument("account", metavar="ACCOUNT")
@click.pass_context
def activate_account(ctx, account: str):
    """Reactivate an account."""
    _set_status(ctx, account, AccountStatus.ACTIVE)


@account_group.command("top")
@click.option("--limit", type=int, default=5, show_default=True, help="Number of accounts")
@click.pass_context
def top_debtors(ctx, limit: int):
    """Show the accounts that owe the most."""
    db = ctx.obj["db"]
    debtors = AccountService(db).top_debtors(limit=limit)
    if not debtors:
        click.echo("Nobody owes anything.")
        return
    for acc in debtors:
        click.echo(f"{acc.name:24s} {acc.balance:>12,.2f}")


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")
