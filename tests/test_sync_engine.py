"""Tests for the client sync engine."""

import logging
from decimal import Decimal

import pytest

from bizledger.domain.account import AccountService
from bizledger.domain.entities import EntityClass
from bizledger.domain.errors import DomainError, TransportError
from bizledger.domain.notification import NotificationService
from bizledger.sync.connectivity import ConnectivityMonitor
from bizledger.sync.engine import RunStatus, SyncEngine, SyncState, pending_counts
from bizledger.sync.outbox import Outbox
from bizledger.sync.policies import POLICIES, ConflictPolicy
from bizledger.sync.reconciler import Reconciler
from bizledger.sync.scheduler import QueueScheduler
from bizledger.sync.transport import InProcessTransport, Transport


class ScriptedTransport(Transport):
    """Transport double.

    Each send consumes one scripted step: an exception is raised, a dict is
    returned as the response, a callable runs before the batch is passed on.
    Without a step the batch goes to the wrapped transport.
    """

    def __init__(self, inner=None, script=()):
        self.inner = inner
        self.script = list(script)
        self.batches = []

    def send(self, batch):
        self.batches.append(batch)
        step = self.script.pop(0) if self.script else None
        if isinstance(step, Exception):
            raise step
        if isinstance(step, dict):
            return step
        if callable(step):
            step(batch)
        return self.inner.send(batch)


class RejectAll(ConflictPolicy):
    def apply(self, db, record):
        raise DomainError("rejected by remote store")


@pytest.fixture
def make_engine(temp_db, reconciler, outbox, scheduler, sync_config):
    """Build an engine over a scripted transport, after the test's data exists."""

    def factory(script=(), reconciler_=None, **kwargs):
        transport = ScriptedTransport(InProcessTransport(reconciler_ or reconciler), script)
        engine = SyncEngine(
            temp_db, transport, sync_config, outbox=outbox, scheduler=scheduler, **kwargs
        )
        return engine, transport

    return factory


@pytest.fixture
def sale(sample_account, transaction_service, payment_service, rice):
    """Sale of 1000.00 with a payment of 400.00 against it."""
    txn = transaction_service.create_transaction(sample_account.client_id, rice)
    payment = payment_service.record_payment(
        sample_account.client_id, Decimal("400.00"), transaction_id=txn.client_id
    )
    return txn, payment


def nothing_pending(db):
    return all(count == 0 for count in pending_counts(db).values())


class TestSyncRun:
    def test_pushes_everything(self, make_engine, temp_db, server_db, outbox, sample_account, sale):
        engine, transport = make_engine()

        result = engine.trigger_manual()

        assert result.status == RunStatus.OK
        assert result.synced == {"accounts": 1, "transactions": 1, "ledger": 2, "payments": 1}
        assert len(transport.batches) == 1
        assert nothing_pending(temp_db)
        assert len(outbox) == 0
        assert engine.state == SyncState.IDLE

        local = temp_db.get(EntityClass.ACCOUNT, sample_account.client_id)
        remote = server_db.get(EntityClass.ACCOUNT, sample_account.client_id)
        assert local.balance == remote.balance == Decimal("600.00")
        assert local.server_id == remote.server_id is not None

    def test_batch_is_camel_case_json(self, make_engine, sample_account, sale):
        engine, transport = make_engine()
        engine.trigger_manual()

        batch = transport.batches[0]
        assert set(batch) == {"accounts", "transactions", "ledger", "payments"}
        account = batch["accounts"][0]
        assert account["clientId"] == sample_account.client_id
        assert "balance" not in account
        assert batch["transactions"][0]["balanceDue"] == "600.00"

    def test_nothing_to_sync(self, make_engine):
        engine, transport = make_engine()

        assert engine.trigger_manual().status == RunStatus.SKIPPED
        assert transport.batches == []

    def test_second_run_is_skipped(self, make_engine, sample_account):
        engine, transport = make_engine()
        engine.trigger_manual()

        assert engine.trigger_manual().status == RunStatus.SKIPPED
        assert len(transport.batches) == 1

    def test_edit_during_send_is_not_lost(
        self, make_engine, temp_db, server_db, account_service, outbox, sample_account
    ):
        def edit(batch):
            account_service.update_account(sample_account.client_id, name="Renamed")

        engine, _ = make_engine(script=[edit])
        engine.trigger_manual()

        local = temp_db.get(EntityClass.ACCOUNT, sample_account.client_id)
        assert local.synced is False
        assert len(outbox) == 1
        assert server_db.get(EntityClass.ACCOUNT, sample_account.client_id).name == "Test Customer"

        engine.trigger_manual()

        assert temp_db.get(EntityClass.ACCOUNT, sample_account.client_id).synced is True
        assert server_db.get(EntityClass.ACCOUNT, sample_account.client_id).name == "Renamed"
        assert len(outbox) == 0

    def test_rejected_records_stay_pending(self, make_engine, temp_db, server_db, outbox, sample_account, sale):
        _, payment = sale
        policies = dict(POLICIES)
        policies[EntityClass.PAYMENT] = RejectAll(EntityClass.PAYMENT)
        engine, _ = make_engine(reconciler_=Reconciler(server_db, policies))

        result = engine.trigger_manual()

        assert result.status == RunStatus.OK
        assert [(e.entity_class, e.client_id) for e in result.errors] == [
            (EntityClass.PAYMENT, payment.client_id)
        ]
        assert temp_db.list_unsynced(EntityClass.PAYMENT)[0].client_id == payment.client_id
        assert pending_counts(temp_db)["ledger"] == 0
        assert [item.client_id for item in outbox.pending()] == [payment.client_id]

    def test_invalid_response_counts_as_failure(self, make_engine, temp_db, sample_account):
        engine, _ = make_engine(script=[{"synced": "everything"}])

        result = engine.trigger_manual()

        assert result.status == RunStatus.FAILED
        assert "Invalid sync response" in result.error
        assert temp_db.count_unsynced(EntityClass.ACCOUNT) == 1


class TestRetries:
    def test_transport_failure_leaves_state(self, make_engine, temp_db, outbox, scheduler, sample_account):
        engine, _ = make_engine(script=[TransportError("connection refused")])

        result = engine.trigger_manual()

        assert result.status == RunStatus.FAILED
        assert result.attempt == 1
        assert not result.exhausted
        assert engine.state == SyncState.IDLE
        assert temp_db.count_unsynced(EntityClass.ACCOUNT) == 1
        assert len(outbox) == 1
        assert scheduler.next_delay() == 2.0

    def test_backoff_then_failed(self, make_engine, scheduler, clock, sample_account):
        failures = [TransportError(f"down {n}") for n in range(4)]
        engine, transport = make_engine(script=failures)
        results = []
        engine.subscribe(results.append)

        engine.trigger_manual()
        delays = []
        while scheduler.next_delay() is not None:
            delay = scheduler.next_delay()
            delays.append(delay)
            clock.advance(delay / 2)
            assert scheduler.run_due() == 0
            clock.advance(delay / 2)
            assert scheduler.run_due() == 1

        assert delays == [2.0, 4.0, 8.0]
        assert len(transport.batches) == 4
        assert engine.state == SyncState.FAILED
        assert results[-1].exhausted
        assert [r.attempt for r in results] == [1, 2, 3, 4]

    def test_failed_ignores_changes_until_manual_trigger(
        self, make_engine, scheduler, account_service, temp_db, sample_account
    ):
        engine, _ = make_engine(script=[TransportError("down")] * 4)
        engine.trigger_manual()
        for _ in range(3):
            scheduler.run_due(now=scheduler.clock() + 100)
        assert engine.state == SyncState.FAILED

        account_service.create_account("Another")
        assert len(scheduler) == 0

        result = engine.trigger_manual()

        assert result.status == RunStatus.OK
        assert engine.state == SyncState.IDLE
        assert engine.attempt == 0
        assert nothing_pending(temp_db)

    def test_success_resets_attempts(self, make_engine, scheduler, clock, sample_account):
        engine, _ = make_engine(script=[TransportError("blip")])
        engine.trigger_manual()
        assert engine.attempt == 1

        clock.advance(2.0)
        scheduler.run_due()

        assert engine.attempt == 0
        assert engine.last_result.status == RunStatus.OK
        assert len(scheduler) == 0

    def test_unexpected_error_does_not_wedge_state(self, make_engine, temp_db, sample_account):
        engine, transport = make_engine(script=[RuntimeError("disk I/O error")])

        with pytest.raises(RuntimeError):
            engine.trigger_manual()

        assert engine.state == SyncState.IDLE
        assert temp_db.count_unsynced(EntityClass.ACCOUNT) == 1
        assert engine.trigger_manual().status == RunStatus.OK
        assert len(transport.batches) == 2

    def test_retry_runs_on_callers_empty_scheduler(self, temp_db, reconciler, sync_config, clock, sample_account):
        scheduler = QueueScheduler(clock=clock)
        transport = ScriptedTransport(InProcessTransport(reconciler), [TransportError("down")])
        engine = SyncEngine(temp_db, transport, sync_config, scheduler=scheduler)

        assert engine.scheduler is scheduler
        engine.trigger_manual()
        assert len(scheduler) == 1

        clock.advance(2.0)
        assert scheduler.run_due() == 1
        assert engine.last_result.status == RunStatus.OK


class TestTriggers:
    def test_shares_callers_empty_outbox(self, temp_db, reconciler, scheduler, sync_config):
        outbox = Outbox(temp_db)
        engine = SyncEngine(
            temp_db, InProcessTransport(reconciler), sync_config, outbox=outbox, scheduler=scheduler
        )
        service = AccountService(temp_db, outbox)

        assert engine.outbox is outbox
        assert service.outbox is outbox
        service.create_account("Asha")
        assert len(scheduler) == 1

    def test_debounced_after_local_change(self, make_engine, scheduler, clock, account_service, temp_db):
        engine, transport = make_engine()

        account_service.create_account("First")
        clock.advance(0.25)
        account_service.create_account("Second")
        clock.advance(0.25)
        assert scheduler.run_due() == 0

        clock.advance(0.25)
        assert scheduler.run_due() == 1
        assert len(transport.batches) == 1
        assert len(transport.batches[0]["accounts"]) == 2
        assert nothing_pending(temp_db)

    def test_trigger_during_run_reruns(self, make_engine, account_service, temp_db, sample_account):
        engine = None

        def interfere(batch):
            account_service.create_account("Late arrival")
            assert engine.request_sync() is None

        engine, transport = make_engine(script=[interfere])
        result = engine.trigger_manual()

        assert result.status == RunStatus.OK
        assert len(transport.batches) == 2
        assert [a["name"] for a in transport.batches[1]["accounts"]] == ["Late arrival"]
        assert nothing_pending(temp_db)

    def test_offline_postpones(self, make_engine, scheduler, account_service, sample_account):
        monitor = ConnectivityMonitor(online=False)
        engine, transport = make_engine(connectivity=monitor)

        assert engine.request_sync().status == RunStatus.OFFLINE
        account_service.create_account("Offline edit")

        assert transport.batches == []
        assert len(scheduler) == 0

    def test_connectivity_restored_syncs(self, make_engine, temp_db, sample_account):
        monitor = ConnectivityMonitor(online=False)
        engine, transport = make_engine(connectivity=monitor)

        monitor.set_online(True)

        assert len(transport.batches) == 1
        assert nothing_pending(temp_db)

    def test_connectivity_restored_resets_retries(self, make_engine, scheduler, sample_account):
        monitor = ConnectivityMonitor(online=True)
        engine, _ = make_engine(script=[TransportError("down")] * 4, connectivity=monitor)
        engine.trigger_manual()
        for _ in range(3):
            scheduler.run_due(now=scheduler.clock() + 100)
        assert engine.state == SyncState.FAILED

        monitor.set_online(False)
        monitor.set_online(True)

        assert engine.state == SyncState.IDLE
        assert engine.last_result.status == RunStatus.OK


class TestStatusAndListeners:
    def test_status(self, make_engine, sample_account):
        engine, _ = make_engine(script=[TransportError("no route to host")])
        engine.trigger_manual()

        status = engine.status()

        assert status["state"] == "idle"
        assert status["online"] is True
        assert status["pending"]["accounts"] == 1
        assert status["outbox"] == 1
        assert status["attempt"] == 1
        assert status["last_error"] == "no route to host"

    def test_listener_failure_is_logged(self, make_engine, caplog):
        engine, _ = make_engine()

        def broken(result):
            raise RuntimeError("listener bug")

        engine.subscribe(broken)
        with caplog.at_level(logging.ERROR, logger="bizledger"):
            result = engine.trigger_manual()

        assert result.status == RunStatus.SKIPPED
        assert "Sync listener failed" in caplog.text

    def test_unsubscribe(self, make_engine):
        engine, _ = make_engine()
        seen = []
        engine.subscribe(seen.append)
        engine.unsubscribe(seen.append)

        engine.trigger_manual()

        assert seen == []


class TestNotifications:
    def test_dispatches_and_syncs_flag(self, make_engine, temp_db, server_db, outbox, sample_account, sale):
        txn, _ = sale
        sent = []

        def notifier(payload, address):
            sent.append((payload.id, address))
            return True

        notifications = NotificationService(temp_db, notifier, outbox)
        engine, _ = make_engine(notifications=notifications)

        result = engine.trigger_manual()

        assert result.notified == (txn.client_id,)
        assert sent == [(txn.client_id, "9876543210")]
        local = temp_db.get(EntityClass.TRANSACTION, txn.client_id)
        assert local.notified is True
        assert local.synced is False

        second = engine.trigger_manual()

        assert second.notified == ()
        assert server_db.get(EntityClass.TRANSACTION, txn.client_id).notified is True
        assert len(sent) == 1

    def test_declined_notification_is_retried_next_sync(
        self, make_engine, temp_db, outbox, transaction_service, sample_account, rice
    ):
        answers = [False, True]
        notifications = NotificationService(temp_db, lambda payload, address: answers.pop(0), outbox)
        engine, _ = make_engine(notifications=notifications)
        txn = transaction_service.create_transaction(sample_account.client_id, rice)

        assert engine.trigger_manual().notified == ()
        # The server still sees an unnotified transaction on the next change
        transaction_service.update_details(txn.client_id, notes="call first")
        assert engine.trigger_manual().notified == (txn.client_id,)
