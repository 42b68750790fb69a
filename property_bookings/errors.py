"""
Error taxonomy for booking admission.

Every failure raised by the services is a BookingError subclass carrying a
stable code and structured details, so the hosting application can render a
specific message without re-deriving context.
"""

from __future__ import annotations

from typing import Any, Optional


class BookingError(Exception):
    """Base class for all errors raised by property_bookings."""

    code = "BOOKING_ERROR"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(BookingError):
    """Malformed input: bad date ordering, past check-in, non-positive amounts."""

    code = "VALIDATION_ERROR"


class NotFoundError(BookingError):
    """Unknown property or reservation id."""

    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Optional[str] = None):
        self.resource = resource
        self.identifier = identifier
        message = (
            f"{resource} with identifier '{identifier}' not found"
            if identifier
            else f"{resource} not found"
        )
        super().__init__(message, {"resource": resource, "identifier": identifier})


class ForbiddenError(BookingError):
    """Caller does not own the resource."""

    code = "FORBIDDEN"

    def __init__(self, message: str = "Access denied", details: Optional[dict[str, Any]] = None):
        super().__init__(message, details)


class AvailabilityConflict(BookingError):
    """
    Admission rejected because of overlapping reservations or a stay-length bound.

    Attributes:
        reason: AvailabilityReason value (overlap vs. minimum/maximum stay)
        conflicts: Conflicting reservation records (empty for stay-length violations)
        bound: The violated minimum/maximum stay, in nights, if any
    """

    code = "AVAILABILITY_CONFLICT"

    def __init__(
        self,
        message: str,
        reason: Any,
        conflicts: Optional[list[Any]] = None,
        bound: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.reason = reason
        self.conflicts = list(conflicts or [])
        self.bound = bound
        payload = dict(details or {})
        payload.update(
            {
                "reason": getattr(reason, "value", reason),
                "bound": bound,
                "conflicting_reservations": [
                    getattr(c, "id", c) for c in self.conflicts
                ],
            }
        )
        super().__init__(message, payload)


class StoreUnavailable(BookingError):
    """The reservation store could not be reached; retrying is the caller's decision."""

    code = "STORE_UNAVAILABLE"
