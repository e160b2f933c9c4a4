# Overview: Service-layer operations for operator accounts.

from __future__ import annotations

import logging

from sqlalchemy import func

from ..extensions import db
from ..errors import ConflictError
from ..models import User
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_user
from . import store_service

logger = logging.getLogger(__name__)

ROLE_ADMIN = "admin"

USER_POLICY = ModelValidationPolicy(
    writable_fields={"email", "display_name", "role"},
    required_on_create={"email", "display_name"},
)


def list_users(*, role: str | None = None) -> list[User]:
    return store_service.users.get_all({"role": role}, order_by=(User.display_name.asc(), User.id.asc()))


def get_user(user_id: int) -> User:
    return store_service.users.require(user_id)


def find_user(user_id) -> User | None:
    """Lookup used by request authentication; tolerant of junk ids."""
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        return None
    return db.session.get(User, user_id)


def _ensure_email_free(email: str, exclude_id: int | None = None) -> None:
    query = db.session.query(User.id).filter(func.lower(User.email) == email.lower())
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first():
        raise ConflictError(f"Email already in use: {email}")


def _admin_count() -> int:
    return db.session.query(User).filter(User.role == ROLE_ADMIN).count()


def create_user(payload: dict, actor: str | None = None) -> User:
    patch = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=False)
    enforce_rules_user(patch)
    _ensure_email_free(patch["email"])

    user = User(created_by=actor, **patch)
    store_service.users.create(user)
    logger.info("User %s (%s) created by %s", user.email, user.role, actor)
    return user


def update_user(user_id: int, payload: dict, actor: str | None = None) -> User:
    """
    Raises:
        ConflictError: Email taken, or the last admin would be demoted
    """
    user = store_service.users.require(user_id)
    patch = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=True)
    enforce_rules_user(patch)

    if "email" in patch:
        _ensure_email_free(patch["email"], exclude_id=user.id)
    if user.role == ROLE_ADMIN and patch.get("role", ROLE_ADMIN) != ROLE_ADMIN and _admin_count() <= 1:
        raise ConflictError("Cannot demote the last admin")

    store_service.users.update(user_id, patch, actor=actor)
    return store_service.users.require(user_id)


def delete_user(user_id: int, actor: str | None = None) -> None:
    user = store_service.users.require(user_id)
    if user.role == ROLE_ADMIN and _admin_count() <= 1:
        raise ConflictError("Cannot delete the last admin")
    store_service.users.delete(user_id)
    logger.info("User %s deleted by %s", user_id, actor)
