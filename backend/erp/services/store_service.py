# Overview: Generic collection store over SQLAlchemy models.

"""
Collection Store

The ledger services read and write five collections (customers, products,
invoices, payments, transactions) plus users through one small interface:

    create(record) -> id
    get_by_id(id) -> record | None
    get_all(filters) -> [record]
    update(id, partial) -> None
    delete(id) -> None

plus lock(id) for the read-modify-write of a customer balance or invoice.

Committing calls roll back and surface database failures as
PersistenceError. With commit=False the call joins the ledger posting
under way and the posting owns commit, retry and rollback.
Records are model instances; routes serialize them with to_dict().
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import NotFoundError, PersistenceError, ValidationError
from ..models import Customer, Product, Invoice, Payment, Transaction, User
from erp.time_utils import utcnow
from .concurrency import lock_for_update

logger = logging.getLogger(__name__)


class CollectionStore:
    """CRUD over one model. Equality filters only; no joins, no transactions."""

    def __init__(self, model, *, name: str, append_only: bool = False, protected=()):
        self.model = model
        self.name = name
        self.append_only = append_only
        self.protected = frozenset(protected)
        self._columns = {c.key for c in model.__mapper__.columns}

    def _commit(self, action: str) -> None:
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("Failed to %s %s: %s", action, self.name, exc)
            raise PersistenceError(f"Failed to {action} {self.name}") from exc

    def create(self, record, *, commit: bool = True) -> int:
        """
        Add a record and return its id.

        commit=False joins the caller's unit of work: the record is flushed
        so the id is known, and database errors propagate untranslated so
        the caller can retry or roll back the whole posting.
        """
        if getattr(record, "created_at", None) is None and "created_at" in self._columns:
            record.created_at = utcnow()
        db.session.add(record)
        if commit:
            self._commit("create")
        else:
            db.session.flush()
        return record.id

    def get_by_id(self, record_id):
        try:
            return db.session.get(self.model, record_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load {self.name} {record_id}") from exc

    def require(self, record_id):
        record = self.get_by_id(record_id)
        if record is None:
            raise NotFoundError(self.name.capitalize(), record_id)
        return record

    def lock(self, record_id):
        """Load a record with a row lock for a read-modify-write."""
        record = lock_for_update(db.session.query(self.model).filter_by(id=record_id)).first()
        if record is None:
            raise NotFoundError(self.name.capitalize(), record_id)
        return record

    def get_all(self, filters: dict | None = None, *, order_by=None) -> list:
        query = db.session.query(self.model)
        for key, value in (filters or {}).items():
            if key not in self._columns:
                raise ValidationError(f"Cannot filter {self.name} by {key}")
            if value is None or value == "":
                continue
            query = query.filter(getattr(self.model, key) == value)
        if order_by is not None:
            query = query.order_by(*order_by)
        else:
            query = query.order_by(self.model.id.asc())
        try:
            return query.all()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to list {self.name}") from exc

    def update(self, record_id, partial: dict, *, actor: str | None = None, commit: bool = True) -> None:
        if self.append_only:
            raise ValidationError(f"{self.name} records are immutable")
        record = self.require(record_id)
        for key, value in partial.items():
            if key not in self._columns or key == "id":
                raise ValidationError(f"Unknown field: {key}")
            if key in self.protected:
                raise ValidationError(f"{key} cannot be set directly")
            setattr(record, key, value)
        if "updated_at" in self._columns:
            record.updated_at = utcnow()
        if actor is not None and "updated_by" in self._columns:
            record.updated_by = actor
        if commit:
            self._commit("update")

    def delete(self, record_id, *, commit: bool = True) -> None:
        if self.append_only:
            raise ValidationError(f"{self.name} records are immutable")
        record = self.require(record_id)
        db.session.delete(record)
        if commit:
            self._commit("delete")


# balance_cents only moves through ledger_service.record_transaction
customers = CollectionStore(Customer, name="customer", protected={"balance_cents"})
products = CollectionStore(Product, name="product")
invoices = CollectionStore(Invoice, name="invoice")
payments = CollectionStore(Payment, name="payment")
transactions = CollectionStore(Transaction, name="transaction", append_only=True)
users = CollectionStore(User, name="user")
