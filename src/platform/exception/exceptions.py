from enum import StrEnum
from typing import Any, Optional


class ErrorKind(StrEnum):
    VALIDATION = 'validation'
    NOT_FOUND = 'not_found'
    STATE_CONFLICT = 'state_conflict'
    RESOURCE_CONFLICT = 'resource_conflict'
    CAPACITY_EXHAUSTED = 'capacity_exhausted'
    CONSISTENCY = 'consistency'


class CustomBaseError(Exception):
    """Base class for all custom exceptions - controls logging behavior in @Logger.io

    Carries an error kind and a stable code; transport status is decided by the HTTP edge.
    """

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(
        self, message: str, *, code: str, details: Optional[dict[str, Any]] = None
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return f'[{self.code}] {self.message}'


class ValidationError(CustomBaseError):
    kind = ErrorKind.VALIDATION


class NotFoundError(CustomBaseError):
    kind = ErrorKind.NOT_FOUND


class StateConflictError(CustomBaseError):
    kind = ErrorKind.STATE_CONFLICT


class ResourceConflictError(CustomBaseError):
    kind = ErrorKind.RESOURCE_CONFLICT


class CapacityExhaustedError(CustomBaseError):
    kind = ErrorKind.CAPACITY_EXHAUSTED


class ConsistencyError(CustomBaseError):
    """A prior partial failure left holds and counters out of line; surfaced, never healed."""

    kind = ErrorKind.CONSISTENCY


class PaymentGatewayError(Exception):
    """Downstream payment failure; message is passed through unchanged."""
