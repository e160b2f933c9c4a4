# backend/erp/services/products_service.py
"""
Products Service

Stock is maintained by operators through create/update; invoices never
move it. Low stock means stock <= low_stock_threshold.
"""
from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Product
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_product, PRODUCT_CATEGORIES
from . import store_service

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "batch_code", "price_cents", "stock", "low_stock_threshold"},
    required_on_create={"name", "category", "price_cents"},
)

STOCK_LOW = "low"
STOCK_OUT = "out"
STOCK_IN = "in"


def list_products(
    *,
    category: str | None = None,
    stock_status: str | None = None,
    search: str | None = None,
) -> list[Product]:
    """
    List products, newest first.

    stock_status:
    - low: stock <= low_stock_threshold (out of stock included)
    - out: stock == 0
    - in: stock > low_stock_threshold
    """
    query = db.session.query(Product)
    if category:
        query = query.filter(Product.category == category)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(Product.name.ilike(like), Product.batch_code.ilike(like)))
    if stock_status == STOCK_LOW:
        query = query.filter(Product.stock <= Product.low_stock_threshold)
    elif stock_status == STOCK_OUT:
        query = query.filter(Product.stock == 0)
    elif stock_status == STOCK_IN:
        query = query.filter(Product.stock > Product.low_stock_threshold)
    return query.order_by(Product.created_at.desc(), Product.id.desc()).all()


def get_product(product_id: int) -> Product:
    return store_service.products.require(product_id)


def create_product(payload: dict, actor: str | None = None) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    product = Product(created_by=actor, **patch)
    store_service.products.create(product)
    return product


def update_product(product_id: int, payload: dict, actor: str | None = None) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)
    store_service.products.update(product_id, patch, actor=actor)
    return store_service.products.require(product_id)


def delete_product(product_id: int) -> None:
    """Invoice lines keep their product name snapshot, so deletion is allowed."""
    store_service.products.delete(product_id)


def inventory_alerts() -> dict:
    """
    Stock alerts for the inventory screen.

    low_stock excludes out-of-stock products; they are listed separately.
    """
    products = db.session.query(Product).order_by(Product.name.asc()).all()
    low = [p for p in products if 0 < p.stock <= p.low_stock_threshold]
    out = [p for p in products if p.stock == 0]
    categories = {c: 0 for c in PRODUCT_CATEGORIES}
    for p in products:
        categories[p.category] = categories.get(p.category, 0) + 1
    return {
        "low_stock": [p.to_dict() for p in low],
        "out_of_stock": [p.to_dict() for p in out],
        "alert_count": len(low) + len(out),
        "category_counts": categories,
    }
