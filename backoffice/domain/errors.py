"""
Engine error kinds.

Raised by the service layer when a rule is violated or the store fails.
The API layer catches these and translates them into HTTP responses.
"""

from __future__ import annotations


class BackOfficeError(Exception):
    """Base class for every typed failure the engine reports."""


class ValidationError(BackOfficeError):
    """Malformed input: bad amount, empty line items, unresolved customer."""


class PermissionDeniedError(BackOfficeError):
    """The acting user's role may not perform the requested operation."""


class NotFoundError(BackOfficeError):
    """A referenced order, customer or task does not exist."""

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class ConflictError(BackOfficeError):
    """A concurrent writer committed first; reload and retry the operation."""


class InvariantViolationError(BackOfficeError):
    """The operation would break a ledger or lifecycle invariant."""


class StorageError(BackOfficeError):
    """The document store is unavailable or timed out."""


__all__ = [
    "BackOfficeError",
    "ValidationError",
    "PermissionDeniedError",
    "NotFoundError",
    "ConflictError",
    "InvariantViolationError",
    "StorageError",
]
