"""Main CLI entry point."""

import click
from bizledger.database.factories import create_sqlite_database
from bizledger.utils.log_setup import setup_logging

# Import and register all commands at module level
from bizledger.cli.commands import (
    account,
    txn,
    payment,
    ledger,
    sync,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides BIZLEDGER_DB_PATH environment variable)",
    envvar="BIZLEDGER_DB_PATH",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr")
@click.option("--log-file", type=click.Path(), help="Also write logs to this file")
@click.pass_context
def cli(ctx, db_path: str | None, verbose: bool, log_file: str | None):
    """Bizledger - offline-first sales and payments ledger.

    Record sales, purchases and payments on this device and reconcile them
    with a remote store whenever a connection is available.
    """
    ctx.ensure_object(dict)
    setup_logging(verbose=verbose, log_file=log_file)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)


# Register all commands
account.register_commands(cli)
txn.register_commands(cli)
payment.register_commands(cli)
ledger.register_commands(cli)
sync.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
