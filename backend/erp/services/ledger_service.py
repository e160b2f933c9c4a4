# Overview: Customer ledger: transaction recording, balance replay and reconciliation.

"""
Customer Ledger Invariants (authoritative)

- Transactions are append-only; no updates or deletes.
- customer.balance_cents == sum(debit - credit) over the customer's
  transactions replayed in (occurred_at, id) order.
- Each transaction's balance_cents is the running balance right after it.
- The transaction row and the customer balance are written in ONE unit of
  work. A failed commit rolls back both and raises PartialWriteError.
- occurred_at never goes backwards for a customer, so replay order is
  recording order.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import PartialWriteError, ValidationError
from ..models import Customer, Transaction
from ..validation import require_amount, require_choice
from erp.time_utils import as_utc_naive, business_date, in_date_range, utcnow
from .concurrency import run_with_retry
from . import store_service

logger = logging.getLogger(__name__)

TX_INVOICE = "invoice"
TX_PAYMENT = "payment"
TX_RETURN = "return"

TRANSACTION_TYPES = (TX_INVOICE, TX_PAYMENT, TX_RETURN)


# =============================================================================
# TRANSACTION RECORDER
# =============================================================================

def record_transaction(
    *,
    customer_id: int,
    kind: str,
    description: str,
    debit_cents: int = 0,
    credit_cents: int = 0,
    reference_id: str | None = None,
    actor: str | None = None,
) -> Transaction:
    """
    Append a ledger transaction and move the customer's balance.

    new_balance = current_balance + debit_cents - credit_cents

    Args:
        customer_id: Customer whose ledger is posted
        kind: invoice, payment, return
        description: Human-readable line for statements
        debit_cents: Amount added to what the customer owes (>= 0)
        credit_cents: Amount subtracted from what the customer owes (>= 0)
        reference_id: Invoice order number or payment id
        actor: Display name for the audit stamp

    Returns:
        The new Transaction

    Raises:
        ValidationError: Bad kind, description, or amounts
        NotFoundError: Customer does not exist
        PartialWriteError: Commit failed; nothing was applied
    """
    _validate_entry(kind, description, debit_cents, credit_cents)

    def _op():
        customer = lock_customer(customer_id)
        tx = append_entry_locked(
            customer,
            kind=kind,
            description=description,
            debit_cents=debit_cents,
            credit_cents=credit_cents,
            reference_id=reference_id,
            actor=actor,
        )
        db.session.commit()
        return tx

    return run_posting(_op, customer_id=customer_id)


def append_entry_locked(
    customer: Customer,
    *,
    kind: str,
    description: str,
    debit_cents: int,
    credit_cents: int,
    reference_id: str | None,
    actor: str | None,
) -> Transaction:
    """
    Stage a transaction and the matching balance change on a locked customer.

    Caller owns the unit of work (commit or rollback).
    """
    new_balance = customer.balance_cents + debit_cents - credit_cents

    tx = Transaction(
        customer_id=customer.id,
        type=kind,
        description=description,
        debit_cents=debit_cents,
        credit_cents=credit_cents,
        balance_cents=new_balance,
        occurred_at=_next_occurred_at(customer.id),
        reference_id=str(reference_id) if reference_id is not None else None,
        created_at=utcnow(),
        created_by=actor,
    )
    customer.balance_cents = new_balance
    store_service.transactions.create(tx, commit=False)

    logger.info(
        "Ledger %s for customer %s: debit=%d credit=%d balance=%d ref=%s",
        kind, customer.id, debit_cents, credit_cents, new_balance, reference_id,
    )
    return tx


def run_posting(func, *, customer_id: int | None = None):
    """
    Run a unit of work that posts to the ledger.

    Lock/version conflicts are retried. Any database failure that survives
    the retries is rolled back and reported as PartialWriteError. Business
    errors raised mid-way also discard whatever was staged.
    """
    try:
        return run_with_retry(func)
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Ledger posting for customer %s rolled back: %s", customer_id, exc)
        raise PartialWriteError(
            f"Ledger posting for customer {customer_id} failed and was rolled back",
            customer_id=customer_id,
        ) from exc
    except Exception:
        db.session.rollback()
        raise


def _validate_entry(kind: str, description: str, debit_cents: int, credit_cents: int) -> None:
    require_choice("kind", kind, TRANSACTION_TYPES)
    if not description or not str(description).strip():
        raise ValidationError("description is required")
    require_amount("debit_cents", debit_cents)
    require_amount("credit_cents", credit_cents)


def lock_customer(customer_id: int) -> Customer:
    return store_service.customers.lock(customer_id)


def _next_occurred_at(customer_id: int) -> datetime:
    latest = (
        db.session.query(func.max(Transaction.occurred_at))
        .filter(Transaction.customer_id == customer_id)
        .scalar()
    )
    return clamp_occurred_at(latest, utcnow())


def clamp_occurred_at(latest: datetime | None, now: datetime) -> datetime:
    """Clock skew must not reorder a customer's ledger."""
    latest = as_utc_naive(latest)
    if latest is not None and latest > now:
        return latest
    return now


# =============================================================================
# QUERIES
# =============================================================================

def get_customer_transactions(customer_id: int) -> list[Transaction]:
    """All transactions for a customer in replay order."""
    return store_service.transactions.get_all(
        {"customer_id": customer_id},
        order_by=(Transaction.occurred_at.asc(), Transaction.id.asc()),
    )


def list_transactions(
    *,
    customer_id: int | None = None,
    kind: str | None = None,
    reference_id: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    limit: int | None = None,
) -> list[Transaction]:
    """Newest-first transaction listing with optional filters."""
    if kind:
        require_choice("type", kind, TRANSACTION_TYPES)
    rows = store_service.transactions.get_all(
        {
            "customer_id": customer_id,
            "type": kind,
            "reference_id": str(reference_id) if reference_id else None,
        },
        order_by=(Transaction.occurred_at.desc(), Transaction.id.desc()),
    )
    rows = [t for t in rows if in_date_range(business_date(t.occurred_at), start_date, end_date)]
    if limit is not None:
        rows = rows[:limit]
    return rows


# =============================================================================
# BALANCE RECONCILER
# =============================================================================

def replay_balance(customer_id: int) -> int:
    """Balance derived from the ledger alone, ignoring the cached field."""
    return sum(t.net_cents for t in get_customer_transactions(customer_id))


def get_statement(
    customer_id: int,
    *,
    start_date: str | None = None,
    end_date: str | None = None,
) -> dict:
    """
    Customer statement with a running balance recomputed by replay.

    Date filters are inclusive on both ends and compare the YYYY-MM-DD
    day of each transaction. Entries before start_date roll into the
    opening balance.
    """
    customer = store_service.customers.require(customer_id)

    running = 0
    opening = 0
    rows = []
    total_debit = 0
    total_credit = 0

    for tx in get_customer_transactions(customer_id):
        running += tx.net_cents
        day = business_date(tx.occurred_at)
        if start_date and day < start_date:
            opening = running
            continue
        if not in_date_range(day, start_date, end_date):
            continue
        total_debit += tx.debit_cents
        total_credit += tx.credit_cents
        row = tx.to_dict()
        row["running_balance_cents"] = running
        rows.append(row)

    return {
        "customer": customer.to_dict(),
        "start_date": start_date,
        "end_date": end_date,
        "opening_balance_cents": opening,
        "transactions": rows,
        "summary": {
            "total_debit_cents": total_debit,
            "total_credit_cents": total_credit,
            "net_balance_cents": running,
            "transaction_count": len(rows),
        },
    }


def verify_customer_balance(customer_id: int) -> dict:
    """
    Compare the cached balance and the snapshot chain against a replay.

    Read-only; see reconcile_customer_balance to repair.
    """
    customer = store_service.customers.require(customer_id)
    return _verify(customer)


def _verify(customer: Customer) -> dict:
    running = 0
    snapshot_mismatches = []
    for tx in get_customer_transactions(customer.id):
        running += tx.net_cents
        if tx.balance_cents != running:
            snapshot_mismatches.append(tx.id)

    return {
        "customer_id": customer.id,
        "cached_balance_cents": customer.balance_cents,
        "replayed_balance_cents": running,
        "drift_cents": customer.balance_cents - running,
        "snapshot_mismatches": snapshot_mismatches,
        "in_sync": customer.balance_cents == running and not snapshot_mismatches,
    }


def verify_all_balances() -> list[dict]:
    """Verification result for every customer, drifted ones included."""
    customers = store_service.customers.get_all()
    return [_verify(c) for c in customers]


def reconcile_customer_balance(customer_id: int, actor: str | None = None) -> dict:
    """
    Reset the cached balance to the replayed ledger balance.

    The ledger itself is never rewritten. Returns the verification
    result taken before the repair plus the applied balance.
    """
    def _op():
        customer = lock_customer(customer_id)
        before = _verify(customer)
        if before["drift_cents"]:
            logger.warning(
                "Balance drift for customer %s: cached=%d replayed=%d (repaired by %s)",
                customer_id, before["cached_balance_cents"], before["replayed_balance_cents"], actor,
            )
            customer.balance_cents = before["replayed_balance_cents"]
            customer.updated_at = utcnow()
            customer.updated_by = actor
        db.session.commit()
        return {**before, "balance_cents": customer.balance_cents, "repaired": bool(before["drift_cents"])}

    return run_posting(_op, customer_id=customer_id)
