# Overview: Service-layer operations for customer payments and refunds.

"""
Payment Service

WHY: Money received from (or returned to) a customer has to reach the
ledger exactly once, together with the payment record.

DESIGN PRINCIPLES:
- payment -> credit (customer owes less), description "Payment - <method>"
- refund  -> debit (customer owes more), description "Refund - <method>"
- The payment row and its ledger transaction commit in one unit of work
- reference_id of the transaction is the payment id
- An optional order must be an invoice of the same customer
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..errors import ValidationError
from ..models import Payment
from ..validation import PAYMENT_METHODS, require_amount, require_business_date, require_choice, require_id
from erp.time_utils import in_date_range, today_iso, utcnow
from . import ledger_service, store_service

logger = logging.getLogger(__name__)


PAYMENT_TYPE_PAYMENT = "payment"
PAYMENT_TYPE_REFUND = "refund"
VALID_PAYMENT_TYPES = [PAYMENT_TYPE_PAYMENT, PAYMENT_TYPE_REFUND]


def record_payment(payload: dict, actor: str | None = None) -> Payment:
    """
    Record a payment or refund and post it to the customer ledger.

    Request shape:
    {
        "customer_id": 1,
        "amount_cents": 25000,
        "method": "Cash",
        "type": "payment",         (payment | refund)
        "order_id": 7,             (optional)
        "date": "2026-10-19",      (optional, defaults to today)
        "notes": "..."
    }

    Raises:
        ValidationError: Bad payload or order of another customer
        NotFoundError: Customer or order does not exist
        PartialWriteError: Commit failed; neither payment nor ledger written
    """
    payload = payload or {}
    customer_id = require_id("customer_id", payload.get("customer_id"))

    amount = payload.get("amount_cents")
    require_amount("amount_cents", amount, allow_zero=False)
    method = payload.get("method", "Cash")
    require_choice("method", method, PAYMENT_METHODS)
    payment_type = payload.get("type", PAYMENT_TYPE_PAYMENT)
    require_choice("type", payment_type, VALID_PAYMENT_TYPES)
    payment_date = require_business_date("date", payload.get("date")) or today_iso()
    order_id = payload.get("order_id")
    notes = (payload.get("notes") or "").strip() or None

    def _op():
        customer = ledger_service.lock_customer(customer_id)

        invoice = None
        if order_id is not None:
            invoice = store_service.invoices.require(order_id)
            if invoice.customer_id != customer.id:
                raise ValidationError(f"Invoice {invoice.order_number} belongs to another customer")

        payment = Payment(
            customer_id=customer.id,
            customer_name=customer.full_name,
            order_id=invoice.id if invoice else None,
            order_number=invoice.order_number if invoice else None,
            amount_cents=amount,
            method=method,
            date=payment_date,
            notes=notes,
            type=payment_type,
            created_at=utcnow(),
            created_by=actor,
        )
        store_service.payments.create(payment, commit=False)  # payment.id is the ledger reference

        if payment_type == PAYMENT_TYPE_PAYMENT:
            debit, credit, label = 0, amount, "Payment"
        else:
            debit, credit, label = amount, 0, "Refund"

        ledger_service.append_entry_locked(
            customer,
            kind=ledger_service.TX_PAYMENT,
            description=f"{label} - {method}",
            debit_cents=debit,
            credit_cents=credit,
            reference_id=payment.id,
            actor=actor,
        )
        db.session.commit()
        return payment

    payment = ledger_service.run_posting(_op, customer_id=customer_id)
    logger.info("%s %s of %d for customer %s by %s", payment_type, payment.id, amount, customer_id, actor)
    return payment


def get_payment(payment_id: int) -> Payment:
    return store_service.payments.require(payment_id)


def list_payments(
    *,
    customer_id: int | None = None,
    order_id: int | None = None,
    payment_type: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> list[Payment]:
    """Newest first; date range is inclusive on the payment's business date."""
    rows = store_service.payments.get_all(
        {"customer_id": customer_id, "order_id": order_id, "type": payment_type},
        order_by=(Payment.created_at.desc(), Payment.id.desc()),
    )
    return [p for p in rows if in_date_range(p.date, start_date, end_date)]
