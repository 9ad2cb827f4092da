"""Domain errors raised by the reconciliation services.

Routers translate these to HTTP responses; services never raise HTTPException.
"""


class ReconciliationError(Exception):
    """Base class for reconciliation-domain failures."""


class ValidationError(ReconciliationError):
    """Input rejected before any state change."""


class NotFoundError(ReconciliationError):
    """Referenced record does not exist or is outside the caller's scope."""

    def __init__(self, resource: str, resource_id: object | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        message = f"{resource} not found" if resource_id is None else f"{resource} {resource_id} not found"
        super().__init__(message)


class ParseError(ReconciliationError):
    """Statement file could not be parsed. ``row`` is 1-based when known."""

    def __init__(self, message: str, *, row: int | None = None) -> None:
        self.row = row
        super().__init__(f"Row {row}: {message}" if row is not None else message)


class AlreadyMatchedError(ReconciliationError):
    """Transaction or journal line is already part of a match."""


class SessionClosedError(ReconciliationError):
    """Mutation attempted on a closed reconciliation."""


class ConflictError(ReconciliationError):
    """Operation conflicts with the current state of another record."""


class PersistenceError(ReconciliationError):
    """The store rejected a write; the transaction was rolled back. Retryable."""
