"""
Error taxonomy for the record store.

TransportError is the only error the repository recovers from on its own: a
failed remote call degrades to local-only operation and is reported as a
StoreWarning. Everything else propagates to the caller.
"""

from __future__ import annotations


class RepairDeskError(Exception):
    """Base class for all record store errors."""


class TransportError(RepairDeskError):
    """The remote store was unreachable or rejected the request."""


class ConflictError(RepairDeskError):
    """A create collided with an existing unique key."""


class AuthorizationError(RepairDeskError):
    """The acting role may not perform the requested write."""


class ValidationError(RepairDeskError, ValueError):
    """Malformed enum value, missing required field, or dangling reference."""


class RecordNotFoundError(RepairDeskError, KeyError):
    """No entity with the given key exists in the working set."""

    def __str__(self) -> str:
        return Exception.__str__(self)


__all__ = [
    "RepairDeskError",
    "TransportError",
    "ConflictError",
    "AuthorizationError",
    "ValidationError",
    "RecordNotFoundError",
]
