"""Ledger inspection and repair commands."""

import click
from bizledger.cli.account_resolution import resolve_account_or_exit
from bizledger.cli.error_handling import handle_domain_error
from bizledger.domain.account import AccountService
from bizledger.domain.entities import Direction
from bizledger.domain.errors import DomainError
from bizledger.domain.ledger_service import LedgerService
from bizledger.utils.amount_parser import parse_amount


@click.group()
def ledger_group():
    """Inspect, adjust and repair the ledger."""
    pass


@ledger_group.command("show")
@click.argument("account", metavar="ACCOUNT")
@click.pass_context
def show_ledger(ctx, account: str):
    """Show the ledger history of ACCOUNT, newest first."""
    db = ctx.obj["db"]
    acc = resolve_account_or_exit(ctx, AccountService(db), account)
    entries = LedgerService(db).list_entries(acc.client_id)
    if not entries:
        click.echo(f"No ledger entries for '{acc.name}'.")
        return

    click.echo(f"\nLedger of {acc.name}:")
    click.echo("-" * 78)
    for entry in entries:
        sign = "+" if entry.direction == Direction.CREDIT else "-"
        when = entry.created_at.strftime("%Y-%m-%d %H:%M") if entry.created_at else ""
        click.echo(
            f"{when:16s} | {sign}{entry.amount:>11,.2f} | {entry.source.value:11s} | {entry.description}"
        )


@ledger_group.command("adjust")
@click.argument("account", metavar="ACCOUNT")
@click.argument("amount", metavar="AMOUNT")
@click.option(
    "--direction",
    type=click.Choice([d.value for d in Direction]),
    required=True,
    help="credit raises what the account owes, debit lowers it",
)
@click.option("--description", default="", help="Reason for the adjustment")
@click.pass_context
def adjust(ctx, account: str, amount: str, direction: str, description: str):
    """Append a manual adjustment to the ledger of ACCOUNT.

    Examples:
        bizledger ledger adjust Ravi 120 --direction debit --description "Returned goods"
    """
    db = ctx.obj["db"]
    acc = resolve_account_or_exit(ctx, AccountService(db), account)
    try:
        value = parse_amount(amount)
        entry = LedgerService(db).record_adjustment(
            acc.client_id, Direction(direction), value, description
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
    click.echo(f"Recorded {entry.direction.value} of {entry.amount:,.2f} for '{acc.name}'")


@ledger_group.command("balance")
@click.argument("account", metavar="ACCOUNT")
@click.pass_context
def balance(ctx, account: str):
    """Recompute the balance of ACCOUNT from its ledger entries."""
    db = ctx.obj["db"]
    acc = resolve_account_or_exit(ctx, AccountService(db), account)
    report = LedgerService(db).balance_report(acc.client_id)
    click.echo(f"{acc.name}: {report.balance:,.2f} from {report.entry_count} entries")
    if report.balance != acc.balance:
        click.echo(f"Cached balance {acc.balance:,.2f} differs; run 'bizledger ledger recalc'")


@ledger_group.command("recalc")
@click.argument("account", metavar="ACCOUNT", required=False)
@click.pass_context
def recalc(ctx, account: str | None):
    """Overwrite cached balances with recomputed ones.

    Without ACCOUNT every account is recalculated.
    """
    db = ctx.obj["db"]
    service = LedgerService(db)
    if account:
        acc = resolve_account_or_exit(ctx, AccountService(db), account)
        try:
            balances = {acc.client_id: service.recalculate(acc.client_id)}
        except DomainError as e:
            handle_domain_error(ctx, e)
    else:
        balances = service.recalculate_all()
    click.echo(f"Recalculated {len(balances)} account{'s' if len(balances) != 1 else ''}")


@ledger_group.command("drift")
@click.pass_context
def drift(ctx):
    """Report accounts whose cached balance disagrees with their ledger."""
    db = ctx.obj["db"]
    reports = LedgerService(db).find_drift()
    if not reports:
        click.echo("No drift detected.")
        return
    for report in reports:
        click.echo(
            f"{report.account_id}: cached {report.cached:,.2f}, "
            f"recomputed {report.recomputed:,.2f} (off by {report.difference:,.2f})"
        )


def register_commands(cli):
    """Register ledger commands with main CLI."""
    cli.add_command(ledger_group, name="ledger")
