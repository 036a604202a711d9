from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    RESOURCE_UNAVAILABLE = "resource_unavailable"
    INVALID_STATE = "invalid_state"
    INVALID_AMOUNT = "invalid_amount"
    PROCESSOR_ERROR = "processor_error"


class BookingError(Exception):
    """
    Base class for every failure raised by the booking core.

    Each subclass carries a stable ``kind`` so callers (an HTTP layer, a task
    runner) can map failures without matching on message text.
    """

    kind: ErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def as_dict(self) -> dict:
        return {"kind": self.kind.value, "detail": self.message}


class NotFound(BookingError):
    kind = ErrorKind.NOT_FOUND


class CapacityExceeded(BookingError):
    kind = ErrorKind.CAPACITY_EXCEEDED


class ResourceUnavailable(BookingError):
    kind = ErrorKind.RESOURCE_UNAVAILABLE


class InvalidState(BookingError):
    kind = ErrorKind.INVALID_STATE


class InvalidDates(InvalidState):
    """Check-out is not strictly after check-in."""


class InvalidAmount(BookingError):
    kind = ErrorKind.INVALID_AMOUNT


class ProcessorError(BookingError):
    """The payment processor failed, rejected the call, or timed out."""

    kind = ErrorKind.PROCESSOR_ERROR
