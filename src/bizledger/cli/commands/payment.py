"""Payment commands."""

import click
from bizledger.cli.account_resolution import resolve_account_or_exit, resolve_transaction_or_exit
from bizledger.cli.error_handling import handle_domain_error
from bizledger.domain.account import AccountService
from bizledger.domain.entities import PaymentMethod
from bizledger.domain.errors import DomainError
from bizledger.domain.payment import PaymentService
from bizledger.domain.transaction import TransactionService
from bizledger.utils.amount_parser import parse_amount
from bizledger.utils.date_parser import parse_date


@click.group()
def payment_group():
    """Record and list payments."""
    pass


@payment_group.command("record")
@click.argument("account", metavar="ACCOUNT")
@click.argument("amount", metavar="AMOUNT")
@click.option("--txn", "transaction", help="Transaction the payment settles")
@click.option(
    "--method",
    type=click.Choice([m.value for m in PaymentMethod]),
    default=PaymentMethod.CASH.value,
    show_default=True,
    help="Payment method",
)
@click.option("--date", "payment_date", help="Payment date (defaults to today)")
@click.option("--note", default="", help="Free-form note")
@click.pass_context
def record_payment(ctx, account: str, amount: str, transaction, method: str, payment_date, note: str):
    """Record a payment from ACCOUNT.

    Examples:
        bizledger payment record "Ravi Traders" 500
        bizledger payment record Ravi 250 --txn 3f2a9c1e --method upi
    """
    db = ctx.obj["db"]
    acc = resolve_account_or_exit(ctx, AccountService(db), account)
    transaction_id = None
    if transaction:
        transaction_id = resolve_transaction_or_exit(ctx, TransactionService(db), transaction).client_id

    try:
        value = parse_amount(amount)
        paid_on = parse_date(payment_date) if payment_date else None
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    try:
        payment = PaymentService(db).record_payment(
            acc.client_id,
            value,
            transaction_id=transaction_id,
            method=PaymentMethod(method),
            payment_date=paid_on,
            note=note,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    balance = AccountService(db).require_account(acc.client_id).balance
    click.echo(
        f"Recorded payment of {payment.amount:,.2f} from '{acc.name}' ({payment.method.value}). "
        f"Balance now {balance:,.2f}"
    )


@payment_group.command("list")
@click.option("--account", help="Only payments of this account")
@click.pass_context
def list_payments(ctx, account: str | None):
    """List payments, newest first."""
    db = ctx.obj["db"]
    account_id = None
    if account:
        account_id = resolve_account_or_exit(ctx, AccountService(db), account).client_id

    payments = PaymentService(db).list_payments(account_id=account_id)
    if not payments:
        click.echo("No payments found.")
        return

    for p in payments:
        target = f" -> {p.transaction_id[:8]}" if p.transaction_id else ""
        click.echo(
            f"{p.date.isoformat()} | {p.client_id[:8]} | {p.amount:>10,.2f} | "
            f"{p.method.value:13s}{target}"
        )


def register_commands(cli):
    """Register payment commands with main CLI."""
    cli.add_command(payment_group, name="payment")
