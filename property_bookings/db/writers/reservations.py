import json
from decimal import Decimal
from typing import Any

import structlog
from sqlalchemy import delete, insert, update
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError

from property_bookings.config import DEBUG
from property_bookings.db.readers.reservations import get_reservation
from property_bookings.domain.pricing import derive_payment_status, to_money
from property_bookings.errors import AvailabilityConflict, NotFoundError, ValidationError
from property_bookings.models.enums import AvailabilityReason
from property_bookings.models.reservations import Reservation
from property_bookings.schemas.reservations import ReservationRecord
from property_bookings.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

reservations = Reservation.__table__

# Installed by the PostgreSQL migration; absent on SQLite
OVERLAP_CONSTRAINT = "ex_reservations_no_overlap"

# Assigned once at creation
IMMUTABLE_COLUMNS = frozenset({"id", "booking_reference"})


def _raise_if_overlap_violation(e: IntegrityError, context: dict[str, Any]) -> None:
    if OVERLAP_CONSTRAINT in str(e.orig):
        logger.warning("overlap_constraint_violated", **context)
        raise AvailabilityConflict(
            "Property is not available for the selected dates",
            reason=AvailabilityReason.OVERLAPPING_RESERVATION,
            details={**context, "constraint": OVERLAP_CONSTRAINT},
        ) from e


def insert_reservation(conn: Connection, values: dict[str, Any]) -> ReservationRecord:
    """
    Insert a reservation row inside the caller's transaction.

    The property foreign key makes the insert fail if the property row is gone.

    Args:
        conn (Connection): Connection inside an open transaction.
        values (dict[str, Any]): Complete column values, including id and
            booking_reference.

    Returns:
        ReservationRecord: The stored reservation.

    Raises:
        AvailabilityConflict: If the database overlap constraint rejects the row.
        IntegrityError: Any other constraint violation.
        NotFoundError: If the inserted row cannot be read back.
    """
    if DEBUG:
        logger.debug("reservation_insert", values=json.dumps(values, default=str))

    try:
        conn.execute(insert(reservations).values(**values))
    except IntegrityError as e:
        _raise_if_overlap_violation(e, {"property_id": values.get("property_id")})
        raise

    stored = get_reservation(conn, values["id"])
    if stored is None:
        raise NotFoundError("Reservation", values["id"])
    return stored


def update_reservation(
    conn: Connection, reservation_id: str, fields: dict[str, Any]
) -> ReservationRecord:
    """
    Merge fields into an existing reservation.

    id and booking_reference are never written; updated_at is always refreshed.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        reservation_id (str): Reservation ID.
        fields (dict[str, Any]): Columns to change.

    Returns:
        ReservationRecord: The reservation after the update.

    Raises:
        NotFoundError: If no reservation has this id.
        AvailabilityConflict: If the database overlap constraint rejects new dates.
    """
    data = {k: v for k, v in fields.items() if k not in IMMUTABLE_COLUMNS}
    data["updated_at"] = utc_now()

    try:
        result = conn.execute(
            update(reservations).where(reservations.c.id == reservation_id).values(**data)
        )
    except IntegrityError as e:
        _raise_if_overlap_violation(e, {"reservation_id": reservation_id})
        raise

    if result.rowcount == 0:
        raise NotFoundError("Reservation", reservation_id)

    stored = get_reservation(conn, reservation_id)
    if stored is None:
        raise NotFoundError("Reservation", reservation_id)
    return stored


def delete_reservation(conn: Connection, reservation_id: str) -> None:
    """
    Permanently delete a reservation. Bypasses lifecycle rules.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        reservation_id (str): Reservation ID.

    Raises:
        NotFoundError: If no reservation has this id.
    """
    result = conn.execute(delete(reservations).where(reservations.c.id == reservation_id))
    if result.rowcount == 0:
        raise NotFoundError("Reservation", reservation_id)

    logger.info("reservation_hard_deleted", reservation_id=reservation_id)


def record_payment(conn: Connection, reservation_id: str, amount: Decimal) -> ReservationRecord:
    """
    Add a received payment to a reservation and reconcile the balance.

    Keeps amount_paid + amount_due == total_amount and re-derives payment_status.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        reservation_id (str): Reservation ID.
        amount (Decimal): Payment amount, must be positive.

    Returns:
        ReservationRecord: The reservation with updated amounts.

    Raises:
        ValidationError: If amount is not positive.
        NotFoundError: If no reservation has this id.
    """
    if not Decimal(amount).is_finite():
        raise ValidationError("Payment amount must be a number", {"amount": str(amount)})
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError("Payment amount must be positive", {"amount": str(amount)})

    current = get_reservation(conn, reservation_id)
    if current is None:
        raise NotFoundError("Reservation", reservation_id)

    amount_paid = to_money(current.amount_paid + amount)
    total = to_money(current.total_amount)

    return update_reservation(
        conn,
        reservation_id,
        {
            "amount_paid": amount_paid,
            "amount_due": total - amount_paid,
            "payment_status": derive_payment_status(amount_paid, total).value,
        },
    )
