# Overview: Error taxonomy shared by services and routes.

"""
Service errors and their HTTP meaning.

- ValidationError (400): bad input, raised before any write
- NotFoundError (404): referenced customer/product/invoice/payment/user absent
- ConflictError (409): business rule conflict (duplicate email, customer with history)
- PersistenceError (503): the database call failed
- PartialWriteError (500): a ledger posting could not commit all of its writes;
  the unit of work was rolled back so nothing is half-applied
"""

from .validation import ValidationError, ConflictError


class NotFoundError(LookupError):
    """Referenced record does not exist."""

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class PersistenceError(RuntimeError):
    """Backing store call failed."""


class PartialWriteError(PersistenceError):
    """Transaction append and balance update did not both succeed."""

    def __init__(self, message: str, customer_id=None):
        super().__init__(message)
        self.customer_id = customer_id


ERROR_STATUS = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (PartialWriteError, 500),
    (PersistenceError, 503),
)


SERVICE_ERRORS = (ValidationError, ConflictError, NotFoundError, PersistenceError)


def status_for(exc: Exception) -> int:
    for exc_type, status in ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status
    return 500


__all__ = [
    "ValidationError",
    "ConflictError",
    "NotFoundError",
    "PersistenceError",
    "PartialWriteError",
    "status_for",
    "SERVICE_ERRORS",
]
