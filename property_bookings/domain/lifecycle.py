"""
Reservation lifecycle state machine.

All status changes go through transition(); call sites never compare status
strings themselves.

    PENDING    --confirm-->      CONFIRMED
    CONFIRMED  --check_in-->     CHECKED_IN
    CHECKED_IN --check_out-->    COMPLETED
    PENDING | CONFIRMED | CHECKED_IN --cancel--> CANCELLED
    any non-terminal --mark_no_show--> NO_SHOW
"""

from __future__ import annotations

from enum import Enum

from property_bookings.errors import ValidationError
from property_bookings.models.enums import ReservationStatus

TERMINAL_STATUSES = frozenset(
    {
        ReservationStatus.COMPLETED,
        ReservationStatus.CANCELLED,
        ReservationStatus.NO_SHOW,
    }
)

NON_TERMINAL_STATUSES = frozenset(set(ReservationStatus) - TERMINAL_STATUSES)


class LifecycleEvent(str, Enum):
    CONFIRM = "confirm"
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"
    CANCEL = "cancel"
    MARK_NO_SHOW = "mark_no_show"


# event -> (allowed source statuses, target status)
TRANSITIONS: dict[LifecycleEvent, tuple[frozenset[ReservationStatus], ReservationStatus]] = {
    LifecycleEvent.CONFIRM: (
        frozenset({ReservationStatus.PENDING}),
        ReservationStatus.CONFIRMED,
    ),
    LifecycleEvent.CHECK_IN: (
        frozenset({ReservationStatus.CONFIRMED}),
        ReservationStatus.CHECKED_IN,
    ),
    LifecycleEvent.CHECK_OUT: (
        frozenset({ReservationStatus.CHECKED_IN}),
        ReservationStatus.COMPLETED,
    ),
    LifecycleEvent.CANCEL: (
        frozenset(
            {
                ReservationStatus.PENDING,
                ReservationStatus.CONFIRMED,
                ReservationStatus.CHECKED_IN,
            }
        ),
        ReservationStatus.CANCELLED,
    ),
    LifecycleEvent.MARK_NO_SHOW: (
        NON_TERMINAL_STATUSES,
        ReservationStatus.NO_SHOW,
    ),
}


def is_terminal(status: ReservationStatus) -> bool:
    return ReservationStatus(status) in TERMINAL_STATUSES


def can_transition(current: ReservationStatus, event: LifecycleEvent) -> bool:
    allowed, _ = TRANSITIONS[LifecycleEvent(event)]
    return ReservationStatus(current) in allowed


def transition(current: ReservationStatus, event: LifecycleEvent) -> ReservationStatus:
    """
    Apply a lifecycle event to a status.

    Args:
        current: The reservation's current status
        event: The event being applied

    Returns:
        The new status

    Raises:
        ValidationError: If the event is not allowed from the current status.
            details carries current_status and attempted_status.
    """
    current = ReservationStatus(current)
    event = LifecycleEvent(event)
    allowed, target = TRANSITIONS[event]

    if current not in allowed:
        raise ValidationError(
            f"Cannot {event.value} reservation with status {current.value}",
            {
                "current_status": current.value,
                "attempted_status": target.value,
                "event": event.value,
            },
        )
    return target
