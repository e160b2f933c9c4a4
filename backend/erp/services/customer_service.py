# Overview: Service-layer operations for customers; encapsulates business logic and database work.

from __future__ import annotations

import logging

from sqlalchemy import or_

from ..extensions import db
from ..errors import ConflictError
from ..models import Customer
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_customer
from . import store_service

logger = logging.getLogger(__name__)

# balance_cents is deliberately absent: it only moves through the ledger.
CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"full_name", "phone", "address", "category", "discount_rate_bps"},
    required_on_create={"full_name"},
)


def list_customers(*, category: str | None = None, search: str | None = None) -> list[Customer]:
    query = db.session.query(Customer)
    if category:
        query = query.filter(Customer.category == category)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(Customer.full_name.ilike(like), Customer.phone.ilike(like)))
    return query.order_by(Customer.created_at.desc(), Customer.id.desc()).all()


def get_customer(customer_id: int) -> Customer:
    return store_service.customers.require(customer_id)


def create_customer(payload: dict, actor: str | None = None) -> Customer:
    """New customers always start with a zero balance."""
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    enforce_rules_customer(patch)

    customer = Customer(balance_cents=0, created_by=actor, **patch)
    store_service.customers.create(customer)
    logger.info("Customer %s created by %s", customer.id, actor)
    return customer


def update_customer(customer_id: int, payload: dict, actor: str | None = None) -> Customer:
    """
    Update contact details or discount rate.

    A new discount rate only applies to invoices created afterwards.
    """
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    enforce_rules_customer(patch)
    store_service.customers.update(customer_id, patch, actor=actor)
    return store_service.customers.require(customer_id)


def customer_history_counts(customer_id: int) -> dict:
    return {
        name: len(store.get_all({"customer_id": customer_id}))
        for name, store in (
            ("transactions", store_service.transactions),
            ("invoices", store_service.invoices),
            ("payments", store_service.payments),
        )
    }


def delete_customer(customer_id: int, actor: str | None = None) -> None:
    """
    Delete a customer with no financial history.

    Raises:
        NotFoundError: Customer does not exist
        ConflictError: Customer still has transactions, invoices, or payments
    """
    store_service.customers.require(customer_id)
    counts = customer_history_counts(customer_id)
    if any(counts.values()):
        raise ConflictError(
            "Customer has financial history and cannot be deleted "
            f"({counts['transactions']} transactions, {counts['invoices']} invoices, "
            f"{counts['payments']} payments)"
        )
    store_service.customers.delete(customer_id)
    logger.info("Customer %s deleted by %s", customer_id, actor)


def category_counts() -> dict:
    counts = {"Institutions": 0, "Shops": 0, "Individuals": 0}
    for (category, n) in db.session.query(Customer.category, db.func.count(Customer.id)).group_by(Customer.category):
        counts[category] = n
    return counts
