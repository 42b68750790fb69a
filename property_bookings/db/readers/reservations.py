from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.engine import Connection

from property_bookings.models.enums import INACTIVE_STATUSES, ReservationStatus
from property_bookings.models.reservations import Reservation
from property_bookings.schemas.reservations import (
    ReservationFilters,
    ReservationRecord,
    ReservationStatistics,
)

reservations = Reservation.__table__


def _to_record(row: Any) -> ReservationRecord:
    return ReservationRecord.model_validate(dict(row._mapping))


def find_overlapping(
    conn: Connection,
    property_id: str,
    check_in: datetime,
    check_out: datetime,
    exclude_id: Optional[str] = None,
) -> list[ReservationRecord]:
    """
    Find active reservations of a property whose stay overlaps [check_in, check_out).

    One SELECT evaluated against current state: an existing stay conflicts iff
    it starts before the candidate ends and ends after the candidate starts.
    That single predicate covers a candidate starting during, ending during or
    containing an existing stay, and lets back-to-back stays share a day.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        property_id (str): Property ID.
        check_in (datetime): Candidate check-in (inclusive).
        check_out (datetime): Candidate check-out (exclusive).
        exclude_id (Optional[str]): Reservation to ignore, for in-place date edits.

    Returns:
        list[ReservationRecord]: Conflicting reservations ordered by check-in.
    """
    stmt = select(reservations).where(
        reservations.c.property_id == property_id,
        reservations.c.status.not_in([s.value for s in INACTIVE_STATUSES]),
        reservations.c.check_in < check_out,
        reservations.c.check_out > check_in,
    )
    if exclude_id:
        stmt = stmt.where(reservations.c.id != exclude_id)

    rows = conn.execute(stmt.order_by(reservations.c.check_in)).fetchall()
    return [_to_record(r) for r in rows]


def get_reservation(conn: Connection, reservation_id: str) -> Optional[ReservationRecord]:
    """
    Fetch a reservation by id.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        reservation_id (str): Reservation ID.

    Returns:
        Optional[ReservationRecord]: The reservation or None if not found.
    """
    row = conn.execute(
        select(reservations).where(reservations.c.id == reservation_id)
    ).fetchone()
    return _to_record(row) if row else None


def get_reservation_by_external_id(
    conn: Connection, property_id: str, external_id: str
) -> Optional[ReservationRecord]:
    """Fetch the reservation imported from an external calendar event uid."""
    row = conn.execute(
        select(reservations).where(
            reservations.c.property_id == property_id,
            reservations.c.external_id == external_id,
        )
    ).fetchone()
    return _to_record(row) if row else None


def list_reservations(
    conn: Connection, owner_id: str, filters: Optional[ReservationFilters] = None
) -> list[ReservationRecord]:
    """
    List an owner's reservations, newest check-in first.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        owner_id (str): Managing account ID.
        filters (Optional[ReservationFilters]): Property, status, source,
            check-in window and free-text search over guest and reference fields.

    Returns:
        list[ReservationRecord]: Matching reservations.
    """
    stmt = select(reservations).where(reservations.c.owner_id == owner_id)

    if filters:
        if filters.property_id:
            stmt = stmt.where(reservations.c.property_id == filters.property_id)
        if filters.status:
            stmt = stmt.where(reservations.c.status == filters.status.value)
        if filters.source:
            stmt = stmt.where(reservations.c.source == filters.source.value)
        if filters.start_date:
            stmt = stmt.where(reservations.c.check_in >= filters.start_date)
        if filters.end_date:
            stmt = stmt.where(reservations.c.check_in <= filters.end_date)
        if filters.search:
            pattern = f"%{filters.search}%"
            stmt = stmt.where(
                or_(
                    reservations.c.guest_name.ilike(pattern),
                    reservations.c.guest_email.ilike(pattern),
                    reservations.c.guest_phone.ilike(pattern),
                    reservations.c.booking_reference.ilike(pattern),
                )
            )

    rows = conn.execute(stmt.order_by(reservations.c.check_in.desc())).fetchall()
    return [_to_record(r) for r in rows]


def get_upcoming_check_ins(
    conn: Connection, owner_id: str, now: datetime, days: int = 7
) -> list[ReservationRecord]:
    """Confirmed reservations checking in within the next `days` days."""
    rows = conn.execute(
        select(reservations)
        .where(
            reservations.c.owner_id == owner_id,
            reservations.c.status == ReservationStatus.CONFIRMED.value,
            reservations.c.check_in >= now,
            reservations.c.check_in <= now + timedelta(days=days),
        )
        .order_by(reservations.c.check_in)
    ).fetchall()
    return [_to_record(r) for r in rows]


def get_upcoming_check_outs(
    conn: Connection, owner_id: str, now: datetime, days: int = 7
) -> list[ReservationRecord]:
    """Checked-in reservations checking out within the next `days` days."""
    rows = conn.execute(
        select(reservations)
        .where(
            reservations.c.owner_id == owner_id,
            reservations.c.status == ReservationStatus.CHECKED_IN.value,
            reservations.c.check_out >= now,
            reservations.c.check_out <= now + timedelta(days=days),
        )
        .order_by(reservations.c.check_out)
    ).fetchall()
    return [_to_record(r) for r in rows]


def count_by_status(conn: Connection, owner_id: str) -> ReservationStatistics:
    """
    Count an owner's reservations per lifecycle status.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        owner_id (str): Managing account ID.

    Returns:
        ReservationStatistics: total plus confirmed/checked_in/completed/cancelled counts.
    """
    rows = conn.execute(
        select(reservations.c.status, func.count())
        .where(reservations.c.owner_id == owner_id)
        .group_by(reservations.c.status)
    ).fetchall()
    counts = {status: count for status, count in rows}

    return ReservationStatistics(
        total=sum(counts.values()),
        confirmed=counts.get(ReservationStatus.CONFIRMED.value, 0),
        checked_in=counts.get(ReservationStatus.CHECKED_IN.value, 0),
        completed=counts.get(ReservationStatus.COMPLETED.value, 0),
        cancelled=counts.get(ReservationStatus.CANCELLED.value, 0),
    )
