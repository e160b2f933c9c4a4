from __future__ import annotations

from ..extensions import db
from erp.time_utils import to_utc_z


class Transaction(db.Model):
    """
    Append-only customer ledger entry.

    TRANSACTION TYPES:
    - invoice: sale invoice posted (debit)
    - return: return invoice posted (credit)
    - payment: payment received (credit) or refund paid out (debit)

    IMMUTABLE: Records are never updated or deleted.
    balance_cents is the customer's balance right after this entry.
    occurred_at is the recording time; replay order is (occurred_at, id).
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_customer_occurred", "customer_id", "occurred_at", "id"),
        db.CheckConstraint("debit_cents >= 0", name="ck_transactions_debit_nonneg"),
        db.CheckConstraint("credit_cents >= 0", name="ck_transactions_credit_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False, index=True)  # invoice, payment, return
    description = db.Column(db.String(255), nullable=False)

    debit_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_cents = db.Column(db.Integer, nullable=False)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    reference_id = db.Column(db.String(64), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by = db.Column(db.String(255), nullable=True)

    customer = db.relationship("Customer", backref=db.backref("transactions", lazy=True))

    @property
    def net_cents(self) -> int:
        return self.debit_cents - self.credit_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "type": self.type,
            "description": self.description,
            "debit_cents": self.debit_cents,
            "credit_cents": self.credit_cents,
            "balance_cents": self.balance_cents,
            "date": to_utc_z(self.occurred_at),
            "reference_id": self.reference_id,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
        }
