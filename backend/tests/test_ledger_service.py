"""
Customer ledger tests.

Verifies:
- Recording a transaction moves the cached balance by debit - credit
- Replaying a customer's transactions reproduces the cached balance
- A failed commit leaves neither the transaction nor the balance change behind
- Reconciliation repairs drift without rewriting the ledger
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from erp.extensions import db
from erp.errors import NotFoundError, PartialWriteError, ValidationError
from erp.models import Customer, Transaction
from erp.services import ledger_service
from erp.services.concurrency import run_with_retry
from erp.time_utils import business_date


pytestmark = pytest.mark.ledger


def _post(customer, kind="invoice", debit=0, credit=0, description="Entry"):
    return ledger_service.record_transaction(
        customer_id=customer.id,
        kind=kind,
        description=description,
        debit_cents=debit,
        credit_cents=credit,
        actor="Tester",
    )


# =============================================================================
# TRANSACTION RECORDER
# =============================================================================


class TestRecordTransaction:

    def test_debit_increases_balance(self, db_session, customer):
        tx = _post(customer, debit=28_500)
        assert customer.balance_cents == 28_500
        assert tx.balance_cents == 28_500
        assert tx.created_by == "Tester"

    def test_payment_larger_than_balance_goes_negative(self, db_session, customer):
        _post(customer, debit=25_000)
        _post(customer, kind="payment", credit=28_500, description="Payment - Cash")
        assert customer.balance_cents == -3_500

    def test_each_snapshot_is_running_balance(self, db_session, customer):
        _post(customer, debit=10_000)
        _post(customer, kind="payment", credit=4_000)
        _post(customer, kind="return", credit=1_000)

        rows = ledger_service.get_customer_transactions(customer.id)
        assert [t.balance_cents for t in rows] == [10_000, 6_000, 5_000]

    def test_zero_amounts_are_allowed(self, db_session, customer):
        tx = _post(customer)
        assert tx.balance_cents == 0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"kind": "transfer"},
            {"description": "   "},
            {"debit": -1},
            {"credit": -5},
        ],
    )
    def test_rejects_bad_entries_before_writing(self, db_session, customer, kwargs):
        with pytest.raises(ValidationError):
            _post(customer, **kwargs)
        assert db_session.query(Transaction).count() == 0
        assert customer.balance_cents == 0

    def test_unknown_customer(self, db_session):
        with pytest.raises(NotFoundError):
            ledger_service.record_transaction(customer_id=999, kind="invoice", description="x", debit_cents=1)

    def test_occurred_at_never_goes_backwards(self, db_session, customer, monkeypatch):
        first = _post(customer, debit=100)
        earlier = first.occurred_at.replace(year=first.occurred_at.year - 1)
        monkeypatch.setattr(ledger_service, "utcnow", lambda: earlier)

        second = _post(customer, debit=100)
        assert second.occurred_at >= first.occurred_at
        assert [t.id for t in ledger_service.get_customer_transactions(customer.id)] == [first.id, second.id]

    def test_clamp_accepts_timezone_aware_latest(self):
        # PostgreSQL returns timestamptz values as aware datetimes
        now = datetime(2026, 10, 19, 12, 0, 0)
        ahead = datetime(2026, 10, 19, 14, 30, 0, tzinfo=timezone(timedelta(hours=2)))
        behind = datetime(2026, 10, 19, 9, 0, 0, tzinfo=timezone.utc)

        assert ledger_service.clamp_occurred_at(ahead, now) == datetime(2026, 10, 19, 12, 30, 0)
        assert ledger_service.clamp_occurred_at(behind, now) == now
        assert ledger_service.clamp_occurred_at(None, now) == now

    def test_business_date_uses_utc_day(self):
        after_midnight_cairo = datetime(2026, 10, 20, 1, 0, 0, tzinfo=timezone(timedelta(hours=3)))
        assert business_date(after_midnight_cairo) == "2026-10-19"


class TestAtomicity:

    def test_failed_commit_rolls_back_both_writes(self, db_session, customer, monkeypatch):
        _post(customer, debit=5_000)

        def failing_commit():
            raise IntegrityError("INSERT INTO transactions", {}, Exception("disk full"))

        monkeypatch.setattr(db.session, "commit", failing_commit)
        with pytest.raises(PartialWriteError) as exc:
            _post(customer, kind="payment", credit=2_000)
        monkeypatch.undo()

        assert exc.value.customer_id == customer.id
        db_session.expire_all()
        reloaded = db_session.get(Customer, customer.id)
        assert reloaded.balance_cents == 5_000
        assert db_session.query(Transaction).filter_by(customer_id=customer.id).count() == 1

    def test_version_conflicts_are_retried(self, db_session):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise StaleDataError("customers row changed")
            return "ok"

        assert run_with_retry(flaky, backoff_base=0) == "ok"
        assert len(calls) == 3

    def test_retry_gives_up_after_attempts(self, db_session):
        def always_stale():
            raise StaleDataError("customers row changed")

        with pytest.raises(StaleDataError):
            run_with_retry(always_stale, attempts=2, backoff_base=0)


# =============================================================================
# BALANCE RECONCILER
# =============================================================================


class TestReplay:

    def test_replay_matches_cached_balance(self, db_session, customer):
        for debit, credit in [(30_000, 0), (0, 12_500), (0, 30_000), (7_250, 0)]:
            _post(customer, kind="invoice" if debit else "payment", debit=debit, credit=credit)

        assert ledger_service.replay_balance(customer.id) == customer.balance_cents == -5_250
        assert ledger_service.verify_customer_balance(customer.id)["in_sync"] is True

    def test_verify_all_reports_every_customer(self, db_session, make_customer):
        a = make_customer("A")
        b = make_customer("B")
        _post(a, debit=100)
        results = ledger_service.verify_all_balances()
        assert [r["customer_id"] for r in results] == [a.id, b.id]
        assert all(r["in_sync"] for r in results)


class TestReconcile:

    def _drift(self, db_session, customer, cents):
        # Simulate a cache corrupted outside the ledger service.
        db_session.execute(
            Customer.__table__.update()
            .where(Customer.id == customer.id)
            .values(balance_cents=cents)
        )
        db_session.commit()
        db_session.expire_all()

    def test_detects_and_repairs_drift(self, db_session, customer):
        _post(customer, debit=10_000)
        self._drift(db_session, customer, 99_999)

        check = ledger_service.verify_customer_balance(customer.id)
        assert check["in_sync"] is False
        assert check["drift_cents"] == 89_999

        result = ledger_service.reconcile_customer_balance(customer.id, actor="Auditor")
        assert result["repaired"] is True
        assert result["balance_cents"] == 10_000
        assert db_session.get(Customer, customer.id).updated_by == "Auditor"
        assert db_session.query(Transaction).count() == 1

    def test_in_sync_customer_is_left_alone(self, db_session, customer):
        _post(customer, debit=10_000)
        result = ledger_service.reconcile_customer_balance(customer.id)
        assert result["repaired"] is False
        assert result["balance_cents"] == 10_000


class TestStatement:

    def test_running_balance_and_summary(self, db_session, customer):
        _post(customer, debit=30_000)
        _post(customer, kind="payment", credit=10_000)

        statement = ledger_service.get_statement(customer.id)
        rows = statement["transactions"]
        assert [r["running_balance_cents"] for r in rows] == [30_000, 20_000]
        assert statement["opening_balance_cents"] == 0
        assert statement["summary"] == {
            "total_debit_cents": 30_000,
            "total_credit_cents": 10_000,
            "net_balance_cents": 20_000,
            "transaction_count": 2,
        }

    def test_date_filters_are_inclusive(self, db_session, customer):
        tx = _post(customer, debit=1_000)
        day = tx.occurred_at.strftime("%Y-%m-%d")

        statement = ledger_service.get_statement(customer.id, start_date=day, end_date=day)
        assert statement["summary"]["transaction_count"] == 1

    def test_entries_before_start_roll_into_opening_balance(self, db_session, customer):
        tx = _post(customer, debit=1_000)
        day = tx.occurred_at.strftime("%Y-%m-%d")
        next_year = f"{int(day[:4]) + 1}{day[4:]}"

        statement = ledger_service.get_statement(customer.id, start_date=next_year)
        assert statement["opening_balance_cents"] == 1_000
        assert statement["transactions"] == []

    def test_unknown_customer(self, db_session):
        with pytest.raises(NotFoundError):
            ledger_service.get_statement(12345)
