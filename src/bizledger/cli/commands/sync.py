"""Sync commands."""

import json
import time

import click
from bizledger.cli.error_handling import handle_domain_error
from bizledger.config import SyncConfig
from bizledger.database.factories import create_sqlite_database
from bizledger.domain.errors import DomainError
from bizledger.sync.connectivity import ConnectivityMonitor, probe_for_url
from bizledger.sync.engine import RunStatus, SyncEngine, SyncRunResult, SyncState, pending_counts
from bizledger.sync.outbox import Outbox
from bizledger.sync.reconciler import Reconciler
from bizledger.sync.scheduler import QueueScheduler
from bizledger.sync.transport import HttpTransport, InProcessTransport


def _load_config(ctx) -> SyncConfig:
    try:
        return SyncConfig.from_env()
    except DomainError as e:
        handle_domain_error(ctx, e)


def _build_transport(ctx, config: SyncConfig, remote_db: str | None, url: str | None):
    """Return the transport and, for HTTP, a connectivity probe."""
    if remote_db and url:
        click.echo("Error: Use either --remote-db or --url, not both", err=True)
        ctx.exit(1)
    if remote_db:
        server = create_sqlite_database(database_path=remote_db)
        server.connect()
        server.initialize_schema()
        ctx.call_on_close(server.disconnect)
        return InProcessTransport(Reconciler(server)), None

    url = url or config.remote_url
    if not url:
        click.echo(
            "Error: No remote store configured. Pass --remote-db or --url, "
            "or set BIZLEDGER_SYNC_REMOTE_URL",
            err=True,
        )
        ctx.exit(1)
    transport = HttpTransport(url, timeout=config.request_timeout)
    ctx.call_on_close(transport.close)
    try:
        probe = probe_for_url(url, timeout=config.request_timeout)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
    return transport, probe


def _report(result: SyncRunResult) -> None:
    if result.status == RunStatus.OK:
        counts = ", ".join(f"{count} {name}" for name, count in result.synced.items())
        click.echo(f"Synced: {counts}")
        for err in result.errors:
            click.echo(f"  rejected {err.entity_class.value} {err.client_id}: {err.error}")
        if result.notified:
            click.echo(f"Notified {len(result.notified)} transaction(s)")
    elif result.status == RunStatus.SKIPPED:
        click.echo("Nothing to sync.")
    elif result.status == RunStatus.OFFLINE:
        click.echo("Offline; sync postponed.")
    elif result.exhausted:
        click.echo(f"Sync failed after {result.attempt} attempts: {result.error}", err=True)
    else:
        click.echo(f"Sync attempt {result.attempt} failed: {result.error}", err=True)


remote_options = [
    click.option("--remote-db", type=click.Path(), help="Reconcile directly into this SQLite file"),
    click.option("--url", help="Remote reconciler endpoint (overrides BIZLEDGER_SYNC_REMOTE_URL)"),
]


def _with_remote_options(func):
    for option in reversed(remote_options):
        func = option(func)
    return func


@click.group()
def sync_group():
    """Synchronize with the remote store."""
    pass


@sync_group.command("run")
@_with_remote_options
@click.pass_context
def run_sync(ctx, remote_db: str | None, url: str | None):
    """Send everything unsynced in one batch.

    Examples:
        bizledger sync run --url https://ledger.example.com/api/sync
        bizledger sync run --remote-db ./server.db
    """
    db = ctx.obj["db"]
    config = _load_config(ctx)
    transport, _ = _build_transport(ctx, config, remote_db, url)
    engine = SyncEngine(db, transport, config)
    result = engine.trigger_manual()
    _report(result)
    if result.status == RunStatus.FAILED or result.errors:
        ctx.exit(1)


@sync_group.command("status")
@click.pass_context
def sync_status(ctx):
    """Show what is waiting to be synced."""
    db = ctx.obj["db"]
    pending = pending_counts(db)
    click.echo("Pending:")
    for name, count in pending.items():
        click.echo(f"  {name:13s} {count}")
    click.echo(f"Outbox items: {len(Outbox(db))}")


@sync_group.command("watch")
@_with_remote_options
@click.option(
    "--iterations",
    type=int,
    default=0,
    help="Stop after this many loop cycles (0 runs until interrupted)",
)
@click.pass_context
def watch(ctx, remote_db: str | None, url: str | None, iterations: int):
    """Keep syncing: probe connectivity, retry failures, pick up new changes."""
    db = ctx.obj["db"]
    config = _load_config(ctx)
    transport, probe = _build_transport(ctx, config, remote_db, url)
    scheduler = QueueScheduler()
    monitor = ConnectivityMonitor(probe=probe, online=probe is None)
    engine = SyncEngine(db, transport, config, scheduler=scheduler, connectivity=monitor)
    engine.subscribe(_report)

    cycles = 0
    next_probe = scheduler.clock()
    try:
        while True:
            now = scheduler.clock()
            if now >= next_probe:
                monitor.poll()
                next_probe = now + config.probe_interval
                if monitor.is_online and engine.state != SyncState.FAILED and not engine.attempt:
                    engine.request_sync()
            scheduler.run_due()

            cycles += 1
            if iterations and cycles >= iterations:
                break
            delay = scheduler.next_delay()
            wait = next_probe - scheduler.clock()
            if delay is not None:
                wait = min(wait, delay)
            time.sleep(max(0.0, wait))
    except KeyboardInterrupt:
        click.echo("Stopped.")


@sync_group.command("reconcile")
@click.argument("batch_file", type=click.File("r"))
@click.pass_context
def reconcile(ctx, batch_file):
    """Apply a batch file to this database as the remote store.

    Prints the sync response as JSON.
    """
    db = ctx.obj["db"]
    try:
        payload = json.load(batch_file)
    except json.JSONDecodeError as e:
        click.echo(f"Error: Invalid JSON in batch file: {e}", err=True)
        ctx.exit(1)

    try:
        response = Reconciler(db).reconcile(payload)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(json.dumps(response.to_json(), indent=2))


def register_commands(cli):
    """Register sync commands with main CLI."""
    cli.add_command(sync_group, name="sync")
