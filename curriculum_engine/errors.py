"""Domain errors raised by the hierarchy and assignment services."""
from __future__ import annotations


class PlannerError(RuntimeError):
    """Base class for curriculum engine failures."""


class NotFoundError(PlannerError, LookupError):
    """Raised when a lesson, half-term, stack, unit or container id is unknown."""

    def __init__(self, kind: str, identifier: str, *, container: str | None = None) -> None:
        self.kind = kind
        self.identifier = identifier
        self.container = container
        if container is None:
            message = f"{kind} '{identifier}' does not exist"
        else:
            message = f"{kind} '{identifier}' is not in {container}"
        super().__init__(message)


class RangeError(PlannerError, IndexError):
    """Raised when a reorder is given an index outside the ordered list."""


class InvariantViolation(PlannerError):
    """Raised when a mutation would break a hierarchy invariant.

    The store is left exactly as it was before the mutation was attempted.
    """


class PersistenceError(PlannerError):
    """Raised when the durable storage boundary fails.

    The in-memory mutation has already been applied; the failed write is kept
    so that it can be retried.
    """

    def __init__(self, operation: str, identifier: str, message: str) -> None:
        self.operation = operation
        self.identifier = identifier
        super().__init__(f"{operation} failed for '{identifier}': {message}")


__all__ = [
    "InvariantViolation",
    "NotFoundError",
    "PersistenceError",
    "PlannerError",
    "RangeError",
]
