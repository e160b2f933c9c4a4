# Overview: Service-layer operations for invoices; encapsulates business logic and database work.

"""
Invoice Service

WHY: An invoice is the only place where a sale (or a return) turns into
money the customer owes. Its financial effect is decided once, at creation.

DESIGN PRINCIPLES:
- Discount rate is copied from the customer at creation and frozen
- Totals are derived from lines: total = subtotal - discount
- Creating an invoice posts exactly one ledger transaction, in the same
  unit of work as the invoice row (sale -> debit, return -> credit)
- Edits follow INVOICE_EDIT_POLICY:
    metadata (default): invoice row only, ledger untouched
    repost: a total change posts a correcting transaction for the difference
- Deleting an invoice never rewrites the ledger
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from flask import current_app

from ..extensions import db
from ..errors import ConflictError, ValidationError
from ..models import Invoice, InvoiceLine
from ..validation import PAYMENT_METHODS, require_amount, require_business_date, require_choice, require_id
from erp.time_utils import today_iso, utcnow
from . import ledger_service, store_service

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

STATUS_PENDING = "pending"
STATUS_PARTIAL = "partial"
STATUS_PAID = "paid"
STATUS_CANCELLED = "cancelled"

VALID_STATUSES = [STATUS_PENDING, STATUS_PARTIAL, STATUS_PAID, STATUS_CANCELLED]

# paid and cancelled are final
STATUS_TRANSITIONS = {
    STATUS_PENDING: {STATUS_PARTIAL, STATUS_PAID, STATUS_CANCELLED},
    STATUS_PARTIAL: {STATUS_PAID, STATUS_CANCELLED},
    STATUS_PAID: set(),
    STATUS_CANCELLED: set(),
}

TYPE_SALE = "sale"
TYPE_RETURN = "return"
VALID_TYPES = [TYPE_SALE, TYPE_RETURN]

EDIT_POLICY_METADATA = "metadata"
EDIT_POLICY_REPOST = "repost"
EDIT_POLICIES = [EDIT_POLICY_METADATA, EDIT_POLICY_REPOST]

# Fields fixed at creation; an edit may repeat them but not change them
IMMUTABLE_FIELDS = ("customer_id", "type", "order_number")
EDITABLE_FIELDS = {"date", "payment_method", "notes", "status", "items", "deposit"}


# =============================================================================
# CALCULATIONS
# =============================================================================

def compute_discount(subtotal_cents: int, discount_rate_bps: int) -> int:
    """subtotal * rate / 100 in cents, rounded half up."""
    return (subtotal_cents * discount_rate_bps + 5_000) // 10_000


def compute_totals(line_totals: list[int], discount_rate_bps: int) -> tuple[int, int, int]:
    """
    Returns:
        (subtotal_cents, discount_amount_cents, total_cents)
    """
    subtotal = sum(line_totals)
    discount = compute_discount(subtotal, discount_rate_bps)
    return subtotal, discount, subtotal - discount


def generate_order_number(prefix: str = "HCP", now: datetime | None = None) -> str:
    """
    Time-derived order number: <prefix><YYYYMMDD><last 6 digits of epoch ms>.

    e.g. HCP20261019123456
    """
    now = now or utcnow()
    epoch_ms = int(now.replace(tzinfo=timezone.utc).timestamp() * 1000)
    return f"{prefix}{now:%Y%m%d}{str(epoch_ms)[-6:]}"


def allocate_order_number(prefix: str = "HCP", now: datetime | None = None, attempts: int = 1000) -> str:
    """Next unused order number, stepping forward one millisecond on collision."""
    now = now or utcnow()
    for i in range(attempts):
        candidate = generate_order_number(prefix, now + timedelta(milliseconds=i))
        if not store_service.invoices.get_all({"order_number": candidate}):
            return candidate
    raise ConflictError("Could not allocate a unique order number")


# =============================================================================
# VALIDATION
# =============================================================================

def _parse_items(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one item is required")

    parsed = []
    for i, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise ValidationError(f"Item {i} must be an object")
        product_id = item.get("product_id")
        quantity = item.get("quantity")
        unit_price = item.get("unit_price_cents")

        if not isinstance(product_id, int) or isinstance(product_id, bool):
            raise ValidationError(f"Item {i}: product_id is required")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise ValidationError(f"Item {i}: quantity must be a positive integer")
        if unit_price is not None:
            require_amount(f"Item {i}: unit_price_cents", unit_price)

        parsed.append({"product_id": product_id, "quantity": quantity, "unit_price_cents": unit_price})
    return parsed


def _parse_deposit(deposit) -> dict:
    if deposit and not isinstance(deposit, dict):
        raise ValidationError("deposit must be an object")
    if not deposit or not deposit.get("paid", True):
        return {"deposit_paid": False, "deposit_amount_cents": None, "deposit_method": None}
    amount = deposit.get("amount_cents", 0)
    method = deposit.get("method", "Cash")
    require_amount("deposit.amount_cents", amount)
    require_choice("deposit.method", method, PAYMENT_METHODS)
    return {"deposit_paid": True, "deposit_amount_cents": amount, "deposit_method": method}


def _parse_date(value) -> str:
    return require_business_date("date", value) or today_iso()


def _build_lines(items: list[dict]) -> list[InvoiceLine]:
    lines = []
    for position, item in enumerate(items):
        product = store_service.products.require(item["product_id"])
        unit_price = item["unit_price_cents"]
        if unit_price is None:
            unit_price = product.price_cents
        lines.append(
            InvoiceLine(
                position=position,
                product_id=product.id,
                product_name=product.name,
                quantity=item["quantity"],
                unit_price_cents=unit_price,
                total_cents=item["quantity"] * unit_price,
            )
        )
    return lines


def _lock_invoice(invoice_id: int) -> Invoice:
    return store_service.invoices.lock(invoice_id)


# =============================================================================
# INVOICE CREATION
# =============================================================================

def create_invoice(payload: dict, actor: str | None = None) -> Invoice:
    """
    Create a sale or return invoice and post it to the customer ledger.

    Request shape:
    {
        "customer_id": 1,
        "items": [{"product_id": 3, "quantity": 2, "unit_price_cents": 15000}],
        "date": "2026-10-19",            (optional, defaults to today)
        "type": "sale",                  (sale | return)
        "status": "pending",
        "payment_method": "Cash",
        "notes": "...",
        "deposit": {"amount_cents": 5000, "method": "Cash", "paid": true}
    }

    unit_price_cents defaults to the product's current price.

    Raises:
        ValidationError: Bad payload
        NotFoundError: Customer or product does not exist
        PartialWriteError: Commit failed; neither invoice nor ledger written
    """
    payload = payload or {}
    customer_id = require_id("customer_id", payload.get("customer_id"))

    items = _parse_items(payload.get("items"))
    invoice_type = payload.get("type", TYPE_SALE)
    require_choice("type", invoice_type, VALID_TYPES)
    status = payload.get("status", STATUS_PENDING)
    require_choice("status", status, VALID_STATUSES)
    payment_method = payload.get("payment_method", "Cash")
    require_choice("payment_method", payment_method, PAYMENT_METHODS)
    invoice_date = _parse_date(payload.get("date"))
    deposit = _parse_deposit(payload.get("deposit"))
    notes = (payload.get("notes") or "").strip() or None

    prefix = current_app.config.get("ORDER_NUMBER_PREFIX", "HCP")

    def _op():
        customer = ledger_service.lock_customer(customer_id)
        lines = _build_lines(items)
        subtotal, discount, total = compute_totals(
            [line.total_cents for line in lines], customer.discount_rate_bps
        )

        invoice = Invoice(
            order_number=allocate_order_number(prefix),
            customer_id=customer.id,
            customer_name=customer.full_name,
            date=invoice_date,
            subtotal_cents=subtotal,
            discount_rate_bps=customer.discount_rate_bps,
            discount_amount_cents=discount,
            total_cents=total,
            payment_method=payment_method,
            notes=notes,
            status=status,
            type=invoice_type,
            created_at=utcnow(),
            created_by=actor,
            **deposit,
        )
        invoice.items = lines
        store_service.invoices.create(invoice, commit=False)

        if invoice_type == TYPE_SALE:
            ledger_service.append_entry_locked(
                customer,
                kind=ledger_service.TX_INVOICE,
                description=f"Invoice {invoice.order_number}",
                debit_cents=total,
                credit_cents=0,
                reference_id=invoice.order_number,
                actor=actor,
            )
        else:
            ledger_service.append_entry_locked(
                customer,
                kind=ledger_service.TX_RETURN,
                description=f"Return {invoice.order_number}",
                debit_cents=0,
                credit_cents=total,
                reference_id=invoice.order_number,
                actor=actor,
            )

        db.session.commit()
        return invoice

    invoice = ledger_service.run_posting(_op, customer_id=customer_id)
    logger.info("Invoice %s (%s) created for customer %s by %s", invoice.order_number, invoice_type, customer_id, actor)
    return invoice


# =============================================================================
# INVOICE EDITS
# =============================================================================

def update_invoice(
    invoice_id: int,
    payload: dict,
    actor: str | None = None,
    policy: str | None = None,
) -> Invoice:
    """
    Edit an invoice.

    Items are recomputed with the invoice's frozen discount rate. Under the
    metadata policy the ledger is untouched; under repost a change of total
    posts the difference:
    - sale: higher total -> debit, lower total -> credit
    - return: higher total -> credit, lower total -> debit

    Raises:
        ValidationError: Bad payload, unknown field, or illegal status change
        ConflictError: Items edited on a cancelled invoice
        NotFoundError: Invoice or product does not exist
    """
    payload = payload or {}
    policy = policy or current_app.config.get("INVOICE_EDIT_POLICY", EDIT_POLICY_METADATA)
    require_choice("policy", policy, EDIT_POLICIES)

    for key in payload:
        if key not in EDITABLE_FIELDS and key not in IMMUTABLE_FIELDS:
            raise ValidationError(f"Field not allowed: {key}")

    items = _parse_items(payload["items"]) if "items" in payload else None
    if "status" in payload:
        require_choice("status", payload["status"], VALID_STATUSES)
    if "payment_method" in payload:
        require_choice("payment_method", payload["payment_method"], PAYMENT_METHODS)
    invoice_date = _parse_date(payload["date"]) if "date" in payload else None
    deposit = _parse_deposit(payload["deposit"]) if "deposit" in payload else None

    def _op():
        invoice = _lock_invoice(invoice_id)

        for key in IMMUTABLE_FIELDS:
            if key in payload and payload[key] != getattr(invoice, key):
                raise ValidationError(f"{key} cannot be changed after creation")

        if "status" in payload and payload["status"] != invoice.status:
            allowed = STATUS_TRANSITIONS[invoice.status]
            if payload["status"] not in allowed:
                raise ValidationError(f"Cannot change status from {invoice.status} to {payload['status']}")
            invoice.status = payload["status"]

        if invoice_date is not None:
            invoice.date = invoice_date
        if "payment_method" in payload:
            invoice.payment_method = payload["payment_method"]
        if "notes" in payload:
            invoice.notes = (payload["notes"] or "").strip() or None
        if deposit is not None:
            for key, value in deposit.items():
                setattr(invoice, key, value)

        old_total = invoice.total_cents
        if items is not None:
            if invoice.status == STATUS_CANCELLED:
                raise ConflictError("Cannot change items on a cancelled invoice")
            lines = _build_lines(items)
            subtotal, discount, total = compute_totals(
                [line.total_cents for line in lines], invoice.discount_rate_bps
            )
            invoice.items = lines
            invoice.subtotal_cents = subtotal
            invoice.discount_amount_cents = discount
            invoice.total_cents = total

        invoice.updated_at = utcnow()
        invoice.updated_by = actor

        diff = invoice.total_cents - old_total
        if policy == EDIT_POLICY_REPOST and diff:
            _post_adjustment(invoice, diff, actor)

        db.session.commit()
        return invoice

    return ledger_service.run_posting(_op, customer_id=None)


def _post_adjustment(invoice: Invoice, diff: int, actor: str | None) -> None:
    customer = ledger_service.lock_customer(invoice.customer_id)
    owes_more = diff > 0 if invoice.type == TYPE_SALE else diff < 0
    amount = abs(diff)
    ledger_service.append_entry_locked(
        customer,
        kind=ledger_service.TX_INVOICE if invoice.type == TYPE_SALE else ledger_service.TX_RETURN,
        description=f"Adjustment {invoice.order_number}",
        debit_cents=amount if owes_more else 0,
        credit_cents=0 if owes_more else amount,
        reference_id=invoice.order_number,
        actor=actor,
    )
    logger.info("Invoice %s re-posted: total changed by %d", invoice.order_number, diff)


def set_invoice_status(invoice_id: int, status: str, actor: str | None = None) -> Invoice:
    """Status-only edit; never touches the ledger."""
    return update_invoice(invoice_id, {"status": status}, actor=actor, policy=EDIT_POLICY_METADATA)


def delete_invoice(invoice_id: int, actor: str | None = None) -> None:
    """
    Delete an invoice row.

    Its ledger transactions stay: the ledger is append-only and the
    customer's balance is unchanged. Payments keep their order_number
    snapshot but lose the link.
    """
    order_number = store_service.invoices.require(invoice_id).order_number
    for payment in store_service.payments.get_all({"order_id": invoice_id}):
        store_service.payments.update(payment.id, {"order_id": None}, commit=False)
    store_service.invoices.delete(invoice_id)
    logger.info("Invoice %s deleted by %s (ledger unchanged)", order_number, actor)


# =============================================================================
# QUERIES
# =============================================================================

def get_invoice(invoice_id: int) -> Invoice:
    return store_service.invoices.require(invoice_id)


def list_invoices(
    *,
    status: str | None = None,
    customer_id: int | None = None,
    invoice_type: str | None = None,
    search: str | None = None,
) -> list[Invoice]:
    """Newest first. search matches order number or customer name."""
    rows = store_service.invoices.get_all(
        {"status": status, "customer_id": customer_id, "type": invoice_type},
        order_by=(Invoice.created_at.desc(), Invoice.id.desc()),
    )
    term = (search or "").strip().lower()
    if term:
        rows = [
            inv for inv in rows
            if term in inv.order_number.lower() or term in (inv.customer_name or "").lower()
        ]
    return rows
