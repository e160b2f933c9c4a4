from __future__ import annotations

from ..extensions import db
from erp.time_utils import to_utc_z


class Product(db.Model):
    """
    Product catalog entry with operator-maintained stock.

    NOTE: Invoices never decrement stock; the stock figure is edited by hand.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(16), nullable=False)  # Structural, Exterior, Decorative
    batch_code = db.Column(db.String(64), nullable=True)

    price_cents = db.Column(db.Integer, nullable=False, default=0)
    stock = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by = db.Column(db.String(255), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_by = db.Column(db.String(255), nullable=True)

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.low_stock_threshold

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "batch_code": self.batch_code,
            "price_cents": self.price_cents,
            "stock": self.stock,
            "low_stock_threshold": self.low_stock_threshold,
            "is_low_stock": self.is_low_stock,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
            "updated_by": self.updated_by,
        }
