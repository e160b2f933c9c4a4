from __future__ import annotations

from ..extensions import db
from erp.time_utils import to_utc_z


class Invoice(db.Model):
    """
    Sale or return invoice.

    WHY: The financial effect of an invoice is fixed when it is created:
    the customer's discount rate is copied onto the invoice and the total is
    posted to the customer ledger once. Later changes to the customer's rate
    never touch existing invoices.

    STATUS: pending, partial, paid, cancelled
    TYPE: sale, return (fixed at creation)
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_invoices_order_number"),
        db.Index("ix_invoices_customer_date", "customer_id", "date"),
        db.Index("ix_invoices_status_date", "status", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=False)  # Snapshot at creation

    # Business date (YYYY-MM-DD)
    date = db.Column(db.String(10), nullable=False, index=True)

    # All amounts in cents
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(32), nullable=False, default="Cash")
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    type = db.Column(db.String(16), nullable=False, default="sale")

    # Optional deposit taken with the order
    deposit_amount_cents = db.Column(db.Integer, nullable=True)
    deposit_method = db.Column(db.String(32), nullable=True)
    deposit_paid = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by = db.Column(db.String(255), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_by = db.Column(db.String(255), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))
    items = db.relationship(
        "InvoiceLine",
        backref="invoice",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="InvoiceLine.position",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def deposit_dict(self) -> dict | None:
        if not self.deposit_paid:
            return None
        return {
            "amount_cents": self.deposit_amount_cents or 0,
            "method": self.deposit_method,
            "paid": True,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "date": self.date,
            "items": [line.to_dict() for line in self.items],
            "subtotal_cents": self.subtotal_cents,
            "discount_rate_bps": self.discount_rate_bps,
            "discount_amount_cents": self.discount_amount_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "deposit": self.deposit_dict(),
            "status": self.status,
            "type": self.type,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
            "updated_by": self.updated_by,
            "version_id": self.version_id,
        }


class InvoiceLine(db.Model):
    """Invoice line item; total_cents = quantity * unit_price_cents."""
    __tablename__ = "invoice_lines"
    __table_args__ = (
        db.Index("ix_invoice_lines_product", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    # product_id is a soft reference: the line keeps its name snapshot
    # even if the product is deleted later.
    product_id = db.Column(db.Integer, nullable=False)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_cents": self.total_cents,
        }


class Payment(db.Model):
    """
    Money received from (payment) or returned to (refund) a customer.

    Every payment posts exactly one ledger transaction, committed together
    with the payment row.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_customer_date", "customer_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=False)

    order_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)
    order_number = db.Column(db.String(32), nullable=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(32), nullable=False, default="Cash")
    date = db.Column(db.String(10), nullable=False, index=True)
    notes = db.Column(db.Text, nullable=True)
    type = db.Column(db.String(16), nullable=False, default="payment")  # payment, refund

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by = db.Column(db.String(255), nullable=True)

    customer = db.relationship("Customer", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "order_id": self.order_id,
            "order_number": self.order_number,
            "amount_cents": self.amount_cents,
            "method": self.method,
            "date": self.date,
            "notes": self.notes,
            "type": self.type,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
        }
