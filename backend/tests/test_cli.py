"""
CLI command tests (flask system / ledger / users).
"""

import pytest

from erp.models import Customer, Transaction, User
from erp.services import ledger_service


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


class TestSystemCommands:

    def test_init_creates_admin_once(self, runner, db_session):
        result = runner.invoke(args=["system", "init"])
        assert result.exit_code == 0, result.output
        assert "Created admin" in result.output

        result = runner.invoke(args=["system", "init"])
        assert "existing admin" in result.output
        assert db_session.query(User).filter_by(role="admin").count() == 1

    def test_seed_demo_posts_opening_balances(self, runner, db_session):
        result = runner.invoke(args=["system", "seed-demo"])
        assert result.exit_code == 0, result.output

        abc = db_session.query(Customer).filter_by(full_name="ABC Construction Corp").one()
        assert abc.balance_cents == -50_000
        assert db_session.query(Transaction).count() == 4
        assert all(r["in_sync"] for r in ledger_service.verify_all_balances())

        result = runner.invoke(args=["system", "seed-demo"])
        assert "SKIP" in result.output


@pytest.mark.ledger
class TestLedgerCommands:

    def _drift(self, db_session, customer):
        ledger_service.record_transaction(
            customer_id=customer.id, kind="invoice", description="Opening balance", debit_cents=900
        )
        db_session.execute(
            Customer.__table__.update().where(Customer.id == customer.id).values(balance_cents=0)
        )
        db_session.commit()

    def test_verify_exit_codes(self, runner, db_session, customer):
        result = runner.invoke(args=["ledger", "verify"])
        assert result.exit_code == 0
        assert "0 out of sync" in result.output

        self._drift(db_session, customer)
        result = runner.invoke(args=["ledger", "verify"])
        assert result.exit_code == 1
        assert "DRIFT" in result.output

    def test_reconcile_all(self, runner, db_session, customer):
        self._drift(db_session, customer)
        result = runner.invoke(args=["ledger", "reconcile", "--all"])
        assert result.exit_code == 0, result.output
        assert "1 balances repaired" in result.output

        db_session.expire_all()
        assert db_session.get(Customer, customer.id).balance_cents == 900

    def test_reconcile_needs_a_target(self, runner, db_session):
        result = runner.invoke(args=["ledger", "reconcile"])
        assert result.exit_code != 0


class TestUserCommands:

    def test_create_and_list(self, runner, db_session):
        result = runner.invoke(args=[
            "users", "create", "--email", "clerk@hcp.com", "--display-name", "Clerk", "--role", "user",
        ])
        assert result.exit_code == 0, result.output

        result = runner.invoke(args=["users", "list"])
        assert "clerk@hcp.com" in result.output

    def test_duplicate_email_fails(self, runner, admin_user):
        result = runner.invoke(args=[
            "users", "create", "--email", admin_user.email, "--display-name", "Dup", "--role", "user",
        ])
        assert result.exit_code != 0
