"""Sale and purchase commands."""

from decimal import Decimal, InvalidOperation

import click
from bizledger.cli.account_resolution import resolve_account_or_exit, resolve_transaction_or_exit
from bizledger.cli.error_handling import handle_domain_error
from bizledger.domain.account import AccountService
from bizledger.domain.entities import LineItem, Transaction, TransactionType
from bizledger.domain.errors import DomainError
from bizledger.domain.transaction import TransactionService
from bizledger.utils.amount_parser import parse_amount
from bizledger.utils.date_parser import parse_date


def parse_line_item(value: str) -> LineItem:
    """Parse ``NAME:QUANTITY:UNIT_PRICE`` into a line item.

    The name may itself contain colons; quantity and price are the last two
    fields.
    """
    parts = value.rsplit(":", 2)
    if len(parts) != 3 or not parts[0].strip():
        raise ValueError(f"Line item must look like NAME:QUANTITY:PRICE, got '{value}'")
    name, quantity, price = parts
    try:
        qty = Decimal(quantity.strip())
    except InvalidOperation:
        raise ValueError(f"Invalid quantity '{quantity}' in line item '{value}'") from None
    return LineItem(name=name.strip(), quantity=qty, unit_price=parse_amount(price))


def _print_transaction(txn: Transaction) -> None:
    click.echo(f"Transaction: {txn.client_id}")
    click.echo(f"Type:        {txn.type.value}")
    click.echo(f"Account:     {txn.account_id}")
    click.echo(f"Status:      {txn.status.value}")
    for item in txn.line_items:
        click.echo(f"  {item.name:20s} {item.quantity:>8} x {item.unit_price:>10,.2f} = {item.line_total:>12,.2f}")
    if txn.tax_percent:
        click.echo(f"Tax:         {txn.tax_percent}%")
    click.echo(f"Total:       {txn.total:,.2f}")
    click.echo(f"Paid:        {txn.amount_paid:,.2f}")
    click.echo(f"Balance due: {txn.balance_due:,.2f}")
    if txn.due_date:
        click.echo(f"Due:         {txn.due_date.isoformat()}")
    if txn.notes:
        click.echo(f"Notes:       {txn.notes}")
    click.echo(f"Notified:    {'yes' if txn.notified else 'no'}")
    click.echo(f"Synced:      {'yes' if txn.synced else 'no'}")


def _create(ctx, type: TransactionType, account, items, paid, tax, due, notes, draft):
    db = ctx.obj["db"]
    acc = resolve_account_or_exit(ctx, AccountService(db), account)

    try:
        line_items = [parse_line_item(item) for item in items]
        amount_paid = parse_amount(paid) if paid else Decimal("0")
        tax_percent = Decimal(tax) if tax else Decimal("0")
        due_date = parse_date(due) if due else None
    except (ValueError, InvalidOperation) as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    service = TransactionService(db)
    try:
        txn = service.create_transaction(
            acc.client_id,
            line_items,
            type=type,
            amount_paid=amount_paid,
            tax_percent=tax_percent,
            due_date=due_date,
            notes=notes,
            draft=draft,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(
        f"Recorded {type.value} {txn.client_id} for '{acc.name}': "
        f"total {txn.total:,.2f}, due {txn.balance_due:,.2f} ({txn.status.value})"
    )


def _transaction_options(func):
    func = click.option("--draft", is_flag=True, help="Save as draft (no ledger entry yet)")(func)
    func = click.option("--notes", default="", help="Free-form notes")(func)
    func = click.option("--due", help="Due date (e.g. '2024-02-01', 'in 15 days')")(func)
    func = click.option("--tax", help="Tax percent added to the line totals")(func)
    func = click.option("--paid", help="Amount paid up front")(func)
    func = click.option(
        "--item",
        "items",
        multiple=True,
        required=True,
        help="Line item as NAME:QUANTITY:PRICE (repeatable)",
    )(func)
    func = click.argument("account", metavar="ACCOUNT")(func)
    return func


@click.group()
def txn_group():
    """Record and inspect sales and purchases."""
    pass


@txn_group.command("sale")
@_transaction_options
@click.pass_context
def record_sale(ctx, account, items, paid, tax, due, notes, draft):
    """Record a sale to ACCOUNT.

    Examples:
        bizledger txn sale "Ravi Traders" --item "Rice 5kg:2:350" --paid 200
        bizledger txn sale Ravi --item "Sugar:1:45" --due "in 7 days" --draft
    """
    _create(ctx, TransactionType.SALE, account, items, paid, tax, due, notes, draft)


@txn_group.command("purchase")
@_transaction_options
@click.pass_context
def record_purchase(ctx, account, items, paid, tax, due, notes, draft):
    """Record a purchase from ACCOUNT."""
    _create(ctx, TransactionType.PURCHASE, account, items, paid, tax, due, notes, draft)


@txn_group.command("finalize")
@click.argument("transaction", metavar="TRANSACTION")
@click.pass_context
def finalize_transaction(ctx, transaction: str):
    """Finalize a draft and write its ledger entry."""
    db = ctx.obj["db"]
    service = TransactionService(db)
    txn = resolve_transaction_or_exit(ctx, service, transaction)
    try:
        finalized = service.finalize(txn.client_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Finalized {finalized.client_id} ({finalized.status.value})")


@txn_group.command("list")
@click.option("--account", help="Only transactions of this account")
@click.pass_context
def list_transactions(ctx, account: str | None):
    """List transactions, newest first."""
    db = ctx.obj["db"]
    account_id = None
    if account:
        account_id = resolve_account_or_exit(ctx, AccountService(db), account).client_id

    transactions = TransactionService(db).list_transactions(account_id=account_id)
    if not transactions:
        click.echo("No transactions found.")
        return

    for txn in transactions:
        synced = "" if txn.synced else " *"
        click.echo(
            f"{txn.client_id[:8]} | {txn.type.value:8s} | {txn.status.value:8s} | "
            f"total {txn.total:>10,.2f} | due {txn.balance_due:>10,.2f}{synced}"
        )


@txn_group.command("show")
@click.argument("transaction", metavar="TRANSACTION")
@click.pass_context
def show_transaction(ctx, transaction: str):
    """Show one transaction with its line items."""
    db = ctx.obj["db"]
    txn = resolve_transaction_or_exit(ctx, TransactionService(db), transaction)
    _print_transaction(txn)


@txn_group.command("mark-overdue")
@click.option("--as-of", help="Reference date (defaults to today)")
@click.pass_context
def mark_overdue(ctx, as_of: str | None):
    """Flag open transactions whose due date has passed."""
    db = ctx.obj["db"]
    try:
        reference = parse_date(as_of) if as_of else None
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    changed = TransactionService(db).mark_overdue(as_of=reference)
    click.echo(f"Marked {len(changed)} transaction{'s' if len(changed) != 1 else ''} overdue")


def register_commands(cli):
    """Register transaction commands with main CLI."""
    cli.add_command(txn_group, name="txn")
