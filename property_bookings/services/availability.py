"""Availability decision for a candidate stay against one property."""

from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.engine import Connection

from property_bookings.db.readers.reservations import find_overlapping
from property_bookings.domain.intervals import Interval
from property_bookings.errors import ValidationError
from property_bookings.models.enums import AvailabilityReason
from property_bookings.schemas.reservations import AvailabilityResult, PropertyRecord

logger = structlog.get_logger(__name__)


def check_availability(
    conn: Connection,
    property: PropertyRecord,
    check_in: datetime,
    check_out: datetime,
    now: datetime,
    exclude_id: Optional[str] = None,
) -> AvailabilityResult:
    """
    Decide whether [check_in, check_out) can be admitted for a property.

    Steps, in order:
        1. check_in < check_out, else ValidationError
        2. check_in >= now, else ValidationError
        3. night count within the property's minimum/maximum stay, else
           unavailable with reason MINIMUM_STAY / MAXIMUM_STAY and no conflicts
        4. no overlapping active reservation, else unavailable with reason
           OVERLAPPING_RESERVATION and the conflicting reservations

    Call inside the same transaction as the write, after lock_property(), when
    the result gates an INSERT or UPDATE.

    Args:
        conn: Database connection
        property: The property being booked
        check_in: Candidate check-in (inclusive)
        check_out: Candidate check-out (exclusive)
        now: Current time, for the past check-in rule
        exclude_id: Reservation to ignore (the one being edited)

    Returns:
        AvailabilityResult
    """
    interval = Interval(check_in, check_out)

    if check_in < now:
        raise ValidationError(
            "Check-in date cannot be in the past",
            {"check_in": check_in.isoformat(), "now": now.isoformat()},
        )

    nights = interval.nights

    if property.minimum_stay is not None and nights < property.minimum_stay:
        logger.info(
            "availability_rejected",
            property_id=property.id,
            reason=AvailabilityReason.MINIMUM_STAY.value,
            nights=nights,
            minimum_stay=property.minimum_stay,
        )
        return AvailabilityResult(
            available=False,
            reason=AvailabilityReason.MINIMUM_STAY,
            bound=property.minimum_stay,
            nights=nights,
        )

    if property.maximum_stay is not None and nights > property.maximum_stay:
        logger.info(
            "availability_rejected",
            property_id=property.id,
            reason=AvailabilityReason.MAXIMUM_STAY.value,
            nights=nights,
            maximum_stay=property.maximum_stay,
        )
        return AvailabilityResult(
            available=False,
            reason=AvailabilityReason.MAXIMUM_STAY,
            bound=property.maximum_stay,
            nights=nights,
        )

    conflicts = find_overlapping(conn, property.id, check_in, check_out, exclude_id)
    if conflicts:
        logger.info(
            "availability_rejected",
            property_id=property.id,
            reason=AvailabilityReason.OVERLAPPING_RESERVATION.value,
            check_in=check_in.isoformat(),
            check_out=check_out.isoformat(),
            conflict_count=len(conflicts),
        )
        return AvailabilityResult(
            available=False,
            reason=AvailabilityReason.OVERLAPPING_RESERVATION,
            conflicts=conflicts,
            nights=nights,
        )

    return AvailabilityResult(available=True, nights=nights)
