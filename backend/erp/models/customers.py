from __future__ import annotations

from ..extensions import db
from erp.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data and the cached ledger balance.

    balance_cents is a denormalized copy of the latest transaction's
    balance snapshot. It is only ever written by the ledger service, in the
    same unit of work that appends the transaction.

    SIGN: positive = customer owes the business, negative = customer credit.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_category", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    full_name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    category = db.Column(db.String(16), nullable=False, default="Individuals")  # Institutions, Shops, Individuals

    # Basis points (e.g., 500 = 5.00%), captured onto invoices at creation
    discount_rate_bps = db.Column(db.Integer, nullable=False, default=0)

    balance_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by = db.Column(db.String(255), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_by = db.Column(db.String(255), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "phone": self.phone,
            "address": self.address,
            "category": self.category,
            "discount_rate_bps": self.discount_rate_bps,
            "balance_cents": self.balance_cents,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
            "updated_by": self.updated_by,
            "version_id": self.version_id,
        }
