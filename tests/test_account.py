"""Tests for account service and commands."""

import pytest
from decimal import Decimal

from bizledger.cli.main import cli
from bizledger.domain.entities import AccountKind, AccountStatus, EntityClass, OutboxAction
from bizledger.domain.errors import ConflictError, NotFoundError, ValidationError


class TestAccountService:
    """Tests for AccountService."""

    def test_create_account(self, account_service, outbox):
        account = account_service.create_account(name="  Ravi Traders ", phone="9876543210")
        assert account.name == "Ravi Traders"
        assert account.kind == AccountKind.CUSTOMER
        assert account.balance == Decimal("0.00")
        assert account.synced is False
        assert account.revision == 1

        items = outbox.pending()
        assert [(i.entity_class, i.client_id, i.action) for i in items] == [
            (EntityClass.ACCOUNT, account.client_id, OutboxAction.CREATE)
        ]

    def test_create_requires_name(self, account_service):
        with pytest.raises(ValidationError):
            account_service.create_account(name="   ")

    def test_phone_must_be_unique(self, account_service, sample_account):
        with pytest.raises(ConflictError):
            account_service.create_account(name="Other", phone=sample_account.phone)

    def test_duplicate_names_allowed(self, account_service):
        first = account_service.create_account(name="Anita")
        second = account_service.create_account(name="Anita")
        assert first.client_id != second.client_id

    def test_update_bumps_revision_and_enqueues(self, account_service, outbox, sample_account):
        updated = account_service.update_account(sample_account.client_id, address="MG Road")
        assert updated.address == "MG Road"
        assert updated.revision == 2
        assert updated.synced is False
        assert outbox.pending()[-1].action == OutboxAction.UPDATE

    def test_update_without_changes_is_noop(self, account_service, outbox, sample_account):
        before = len(outbox)
        unchanged = account_service.update_account(sample_account.client_id)
        assert unchanged.revision == sample_account.revision
        assert len(outbox) == before

    def test_update_missing_account(self, account_service):
        with pytest.raises(NotFoundError):
            account_service.update_account("missing", name="X")

    def test_update_keeps_cached_balance(self, account_service, ledger_service, sample_account):
        from bizledger.domain.entities import Direction

        ledger_service.record_adjustment(sample_account.client_id, Direction.CREDIT, Decimal("50"))
        updated = account_service.update_account(sample_account.client_id, name="Renamed")
        assert updated.balance == Decimal("50.00")

    def test_deactivate_and_list(self, account_service, sample_account):
        account_service.set_status(sample_account.client_id, AccountStatus.INACTIVE)
        assert account_service.list_accounts(include_inactive=False) == []
        assert len(account_service.list_accounts()) == 1

    def test_top_debtors(self, account_service, ledger_service):
        from bizledger.domain.entities import Direction

        balances = {"A": "100", "B": "300", "C": "0", "D": "200"}
        for name, amount in balances.items():
            acc = account_service.create_account(name=name)
            if Decimal(amount):
                ledger_service.record_adjustment(acc.client_id, Direction.CREDIT, Decimal(amount))

        top = account_service.top_debtors(limit=2)
        assert [acc.name for acc in top] == ["B", "D"]


def test_account_create_command(cli_runner, temp_db):
    """Test creating an account from the CLI."""
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "account", "create", "Ravi Traders", "--phone", "999"]
    )

    assert result.exit_code == 0
    assert "Created account 'Ravi Traders'" in result.output
    assert "ID:" in result.output


def test_account_create_duplicate_phone(cli_runner, temp_db, sample_account):
    """Test that a duplicate phone number fails."""
    result = cli_runner.invoke(
        cli,
        ["--db-path", temp_db.database_path, "account", "create", "Other", "--phone", sample_account.phone],
    )

    assert result.exit_code == 1
    assert "already belongs" in result.output


def test_account_list_empty(cli_runner, temp_db):
    """Test listing accounts when none exist."""
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "list"])

    assert result.exit_code == 0
    assert "No accounts found" in result.output


def test_account_show_by_name(cli_runner, temp_db, sample_account):
    """Test showing an account resolved by name."""
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "account", "show", "test customer"]
    )

    assert result.exit_code == 0
    assert sample_account.client_id in result.output
    assert "Balance:   0.00 (0 ledger entries)" in result.output


def test_account_show_ambiguous_name(cli_runner, temp_db, account_service):
    """Test that an ambiguous name is rejected."""
    account_service.create_account(name="Anita")
    account_service.create_account(name="Anita")

    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "show", "Anita"])

    assert result.exit_code == 1
    assert "ambiguous" in result.output


def test_account_deactivate_command(cli_runner, temp_db, account_service, sample_account):
    """Test deactivating an account."""
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "account", "deactivate", sample_account.client_id[:8]]
    )

    assert result.exit_code == 0
    assert "now inactive" in result.output
    assert account_service.get_account(sample_account.client_id).status == AccountStatus.INACTIVE


def test_account_update_command(cli_runner, temp_db, account_service, sample_account):
    """Test updating account details."""
    result = cli_runner.invoke(
        cli,
        ["--db-path", temp_db.database_path, "account", "update", "Test Customer", "--name", "Renamed"],
    )

    assert result.exit_code == 0
    assert account_service.get_account(sample_account.client_id).name == "Renamed"
