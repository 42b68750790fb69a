"""
Reservation admission and lifecycle service.

Every operation that can change which dates a property has taken runs as one
transaction: lock the property row, check availability against current state,
write. Two admissions for the same property therefore never both see "no
conflict".
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Iterator, Optional, TypeVar, Union

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError

from property_bookings.config import UPCOMING_WINDOW_DAYS
from property_bookings.db.engine import engine as default_engine
from property_bookings.db.readers.properties import get_property, lock_property
from property_bookings.db.readers.reservations import (
    count_by_status,
    get_reservation,
    get_upcoming_check_ins,
    get_upcoming_check_outs,
    list_reservations,
)
from property_bookings.db.writers.reservations import (
    delete_reservation,
    insert_reservation,
    record_payment,
    update_reservation,
)
from property_bookings.domain.intervals import Interval
from property_bookings.domain.lifecycle import LifecycleEvent, is_terminal, transition
from property_bookings.domain.pricing import calculate_pricing, to_money
from property_bookings.errors import (
    AvailabilityConflict,
    ForbiddenError,
    NotFoundError,
    StoreUnavailable,
    ValidationError,
)
from property_bookings.metrics import (
    admission_duration,
    admissions_total,
    lifecycle_transitions,
    store_failures,
)
from property_bookings.models.enums import (
    AvailabilityReason,
    PaymentStatus,
    ReservationStatus,
)
from property_bookings.schemas.reservations import (
    AvailabilityQuery,
    AvailabilityResult,
    CancelPayload,
    PricingBreakdown,
    PropertyRecord,
    ReservationCreatePayload,
    ReservationFilters,
    ReservationRecord,
    ReservationStatistics,
    ReservationUpdatePayload,
)
from property_bookings.services.availability import check_availability
from property_bookings.utils.datetime import Instant, parse_instant, utc_now

logger = structlog.get_logger(__name__)

PayloadT = TypeVar("PayloadT", bound=BaseModel)

MAX_UPCOMING_DAYS = 90

_CONFLICT_MESSAGES = {
    AvailabilityReason.OVERLAPPING_RESERVATION: "Property is not available for the selected dates",
    AvailabilityReason.MINIMUM_STAY: "Stay is shorter than the property's minimum stay",
    AvailabilityReason.MAXIMUM_STAY: "Stay is longer than the property's maximum stay",
}


def parse_payload(model: type[PayloadT], payload: Union[PayloadT, dict[str, Any]]) -> PayloadT:
    """
    Validate an inbound payload, converting pydantic errors to ValidationError.

    Args:
        model: Payload schema class
        payload: An instance of the schema or a plain dict

    Returns:
        The validated payload

    Raises:
        ValidationError: details["errors"] lists each failing field
    """
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        raise ValidationError("Invalid request data", {"errors": errors}) from e


def new_booking_reference(now: datetime) -> str:
    return f"BK-{now:%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


def raise_if_unavailable(
    availability: AvailabilityResult,
    operation: str,
    property_id: str,
    check_in: datetime,
    check_out: datetime,
) -> None:
    """
    Turn a negative availability result into AvailabilityConflict.

    Also records the admission outcome metric for both cases.
    """
    if availability.available:
        admissions_total.labels(operation=operation, outcome="admitted").inc()
        return

    reason = availability.reason or AvailabilityReason.OVERLAPPING_RESERVATION
    admissions_total.labels(operation=operation, outcome=reason.value.lower()).inc()
    raise AvailabilityConflict(
        _CONFLICT_MESSAGES[reason],
        reason=reason,
        conflicts=availability.conflicts,
        bound=availability.bound,
        details={
            "property_id": property_id,
            "check_in": check_in.isoformat(),
            "check_out": check_out.isoformat(),
            "nights": availability.nights,
        },
    )


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """
    Re-raise database connectivity failures as StoreUnavailable.

    Constraint violations and programming errors propagate unchanged.
    """
    try:
        yield
    except (OperationalError, InterfaceError) as e:
        store_failures.labels(operation=operation).inc()
        logger.error("reservation_store_unavailable", operation=operation, error=str(e))
        raise StoreUnavailable(
            "Reservation store is unavailable", {"operation": operation}
        ) from e
    except DBAPIError as e:
        if not e.connection_invalidated:
            raise
        store_failures.labels(operation=operation).inc()
        logger.error("reservation_store_unavailable", operation=operation, error=str(e))
        raise StoreUnavailable(
            "Reservation store connection was lost", {"operation": operation}
        ) from e


class ReservationService:
    """
    Admission control and lifecycle operations for reservations.

    The caller passes the already-authenticated owner_id explicitly; the
    service never reads session state.

    Attributes:
        engine: SQLAlchemy engine for the reservation store
        clock: Returns the current aware UTC datetime (injectable for tests)

    Example:
        >>> service = ReservationService()
        >>> record = service.create(
        ...     "owner-1",
        ...     {
        ...         "property_id": "prop-1",
        ...         "guest_name": "Ada Guest",
        ...         "check_in": "2025-03-10",
        ...         "check_out": "2025-03-15",
        ...         "number_of_guests": 2,
        ...     },
        ... )
        >>> service.check_in(record.id, "owner-1").status
        <ReservationStatus.CHECKED_IN: 'CHECKED_IN'>
    """

    def __init__(
        self,
        engine: Optional[Engine] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.engine = engine or default_engine
        self.clock = clock

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _verify_property_owner(property: PropertyRecord, owner_id: str) -> None:
        if property.owner_id != owner_id:
            raise ForbiddenError(
                "You do not have permission to book this property",
                {"property_id": property.id},
            )

    @staticmethod
    def _load_owned(conn: Connection, reservation_id: str, owner_id: str) -> ReservationRecord:
        reservation = get_reservation(conn, reservation_id)
        if reservation is None:
            raise NotFoundError("Reservation", reservation_id)
        if reservation.owner_id != owner_id:
            raise ForbiddenError(
                "You do not have permission to access this reservation",
                {"reservation_id": reservation_id},
            )
        return reservation

    @staticmethod
    def _lock_reservation_property(conn: Connection, reservation: ReservationRecord) -> PropertyRecord:
        property = lock_property(conn, reservation.property_id)
        if property is None:
            raise NotFoundError("Property", reservation.property_id)
        return property

    # -------------------------------------------------------------------------
    # Availability and pricing
    # -------------------------------------------------------------------------

    def check_availability(
        self,
        property_id: str,
        check_in: Instant,
        check_out: Instant,
        exclude_id: Optional[str] = None,
    ) -> AvailabilityResult:
        """
        Read-only availability check for a candidate stay.

        Args:
            property_id: Property ID
            check_in: ISO-8601 date/datetime, date or datetime
            check_out: ISO-8601 date/datetime, date or datetime
            exclude_id: Reservation to ignore (when editing its dates)

        Returns:
            AvailabilityResult. The answer can be stale by the time the caller
            acts on it; create() and update() re-check under the property lock.

        Raises:
            ValidationError: Malformed or past dates
            NotFoundError: Unknown property
        """
        query = parse_payload(
            AvailabilityQuery,
            {
                "property_id": property_id,
                "check_in": check_in,
                "check_out": check_out,
                "exclude_reservation_id": exclude_id,
            },
        )

        with store_errors("check_availability"), self.engine.connect() as conn:
            property = get_property(conn, query.property_id)
            if property is None:
                raise NotFoundError("Property", query.property_id)
            return check_availability(
                conn,
                property,
                query.check_in,
                query.check_out,
                self.clock(),
                exclude_id=query.exclude_reservation_id,
            )

    def quote(self, property_id: str, check_in: Instant, check_out: Instant) -> PricingBreakdown:
        """
        Price a stay without admitting it.

        Raises:
            ValidationError: Malformed dates
            NotFoundError: Unknown property
        """
        try:
            interval = Interval(parse_instant(check_in), parse_instant(check_out))
        except ValueError as e:
            raise ValidationError(str(e), {"check_in": str(check_in), "check_out": str(check_out)}) from e

        with store_errors("quote"), self.engine.connect() as conn:
            property = get_property(conn, property_id)
        if property is None:
            raise NotFoundError("Property", property_id)

        return calculate_pricing(
            property.daily_rate, property.cleaning_fee, interval.start, interval.end
        )

    # -------------------------------------------------------------------------
    # Admission
    # -------------------------------------------------------------------------

    def create(
        self, owner_id: str, payload: Union[ReservationCreatePayload, dict[str, Any]]
    ) -> ReservationRecord:
        """
        Admit and store a new reservation.

        The property lock, availability check, pricing and INSERT share one
        transaction. An explicit total_amount in the payload takes precedence
        over computed pricing.

        Args:
            owner_id: Authenticated managing account
            payload: ReservationCreatePayload or equivalent dict

        Returns:
            ReservationRecord with status CONFIRMED

        Raises:
            ValidationError: Invalid payload or past check-in
            NotFoundError: Unknown property
            ForbiddenError: Property belongs to another owner
            AvailabilityConflict: Overlap or stay-length violation
            StoreUnavailable: Database unreachable
        """
        data = parse_payload(ReservationCreatePayload, payload)
        now = self.clock()

        with admission_duration.labels(operation="create").time(), store_errors("create"):
            with self.engine.begin() as conn:
                property = lock_property(conn, data.property_id)
                if property is None:
                    raise NotFoundError("Property", data.property_id)
                self._verify_property_owner(property, owner_id)

                availability = check_availability(
                    conn, property, data.check_in, data.check_out, now
                )
                raise_if_unavailable(
                    availability, "create", property.id, data.check_in, data.check_out
                )

                pricing = calculate_pricing(
                    property.daily_rate, property.cleaning_fee, data.check_in, data.check_out
                )
                if data.total_amount is not None:
                    # Caller-supplied total wins; the nightly rate is derived from it
                    total = to_money(data.total_amount)
                    base_rate = to_money(total / pricing.nights)
                    cleaning_fee = service_fee = Decimal("0.00")
                else:
                    total = pricing.total_amount
                    base_rate = to_money(property.daily_rate)
                    cleaning_fee = pricing.cleaning_fee
                    service_fee = pricing.service_fee

                record = insert_reservation(
                    conn,
                    {
                        "id": str(uuid.uuid4()),
                        "booking_reference": new_booking_reference(now),
                        "owner_id": owner_id,
                        "property_id": property.id,
                        "tenant_id": data.tenant_id,
                        "guest_name": data.guest_name,
                        "guest_email": data.guest_email,
                        "guest_phone": data.guest_phone,
                        "number_of_guests": data.number_of_guests,
                        "check_in": data.check_in,
                        "check_out": data.check_out,
                        "number_of_nights": pricing.nights,
                        "base_rate": base_rate,
                        "cleaning_fee": cleaning_fee,
                        "service_fee": service_fee,
                        "total_amount": total,
                        "amount_paid": Decimal("0.00"),
                        "amount_due": total,
                        "payment_status": PaymentStatus.PENDING.value,
                        "status": ReservationStatus.CONFIRMED.value,
                        "source": data.source.value,
                        "external_id": data.external_id,
                        "guest_notes": data.special_requests,
                        "created_at": now,
                        "updated_at": now,
                    },
                )

        logger.info(
            "reservation_created",
            reservation_id=record.id,
            booking_reference=record.booking_reference,
            property_id=record.property_id,
            owner_id=owner_id,
            total_amount=str(record.total_amount),
        )
        return record

    def update(
        self,
        reservation_id: str,
        owner_id: str,
        payload: Union[ReservationUpdatePayload, dict[str, Any]],
    ) -> ReservationRecord:
        """
        Edit a reservation.

        Date changes are re-admitted under the property lock with the
        reservation itself excluded from the overlap query. Other fields apply
        directly. Amounts are left as booked so recorded payments stay intact.

        Raises:
            ValidationError: Invalid payload; a moved check-in in the past; new
                dates on a completed, cancelled or no-show reservation
            NotFoundError: Unknown reservation
            ForbiddenError: Reservation belongs to another owner
            AvailabilityConflict: New dates overlap or break stay-length bounds
        """
        data = parse_payload(ReservationUpdatePayload, payload)
        now = self.clock()

        with admission_duration.labels(operation="update").time(), store_errors("update"):
            with self.engine.begin() as conn:
                current = self._load_owned(conn, reservation_id, owner_id)
                fields: dict[str, Any] = {}

                if data.changes_dates:
                    property = self._lock_reservation_property(conn, current)
                    current = self._load_owned(conn, reservation_id, owner_id)
                    if is_terminal(current.status):
                        raise ValidationError(
                            f"Cannot change dates of reservation with status {current.status.value}",
                            {
                                "current_status": current.status.value,
                                "reservation_id": reservation_id,
                            },
                        )

                    new_check_in = data.check_in or current.check_in
                    new_check_out = data.check_out or current.check_out
                    # Only a moved check-in has to be in the future; extending an
                    # in-progress stay keeps its original check-in.
                    availability = check_availability(
                        conn,
                        property,
                        new_check_in,
                        new_check_out,
                        now if data.check_in is not None else min(now, new_check_in),
                        exclude_id=reservation_id,
                    )
                    raise_if_unavailable(
                        availability, "update", property.id, new_check_in, new_check_out
                    )
                    fields.update(
                        check_in=new_check_in,
                        check_out=new_check_out,
                        number_of_nights=availability.nights,
                    )

                for name in ("number_of_guests", "guest_name", "guest_email", "guest_phone"):
                    value = getattr(data, name)
                    if value is not None:
                        fields[name] = value
                if data.special_requests is not None:
                    fields["guest_notes"] = data.special_requests

                if not fields:
                    return current

                updated = update_reservation(conn, reservation_id, fields)

        logger.info(
            "reservation_updated",
            reservation_id=reservation_id,
            owner_id=owner_id,
            changed=sorted(fields),
        )
        return updated

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _apply_transition(
        self,
        reservation_id: str,
        owner_id: str,
        event: LifecycleEvent,
        extra: Optional[dict[str, Any]] = None,
    ) -> ReservationRecord:
        with store_errors(event.value), self.engine.begin() as conn:
            current = self._load_owned(conn, reservation_id, owner_id)
            self._lock_reservation_property(conn, current)
            current = self._load_owned(conn, reservation_id, owner_id)

            new_status = transition(current.status, event)
            fields = {"status": new_status.value, **(extra or {})}
            updated = update_reservation(conn, reservation_id, fields)

        lifecycle_transitions.labels(event=event.value, to_status=new_status.value).inc()
        logger.info(
            "reservation_transitioned",
            reservation_id=reservation_id,
            owner_id=owner_id,
            lifecycle_event=event.value,
            from_status=current.status.value,
            to_status=new_status.value,
        )
        return updated

    def confirm(self, reservation_id: str, owner_id: str) -> ReservationRecord:
        """PENDING -> CONFIRMED."""
        return self._apply_transition(reservation_id, owner_id, LifecycleEvent.CONFIRM)

    def check_in(self, reservation_id: str, owner_id: str) -> ReservationRecord:
        """CONFIRMED -> CHECKED_IN. Any other current status fails ValidationError."""
        return self._apply_transition(
            reservation_id,
            owner_id,
            LifecycleEvent.CHECK_IN,
            {"checked_in_at": self.clock()},
        )

    def check_out(self, reservation_id: str, owner_id: str) -> ReservationRecord:
        """CHECKED_IN -> COMPLETED. Any other current status fails ValidationError."""
        return self._apply_transition(
            reservation_id,
            owner_id,
            LifecycleEvent.CHECK_OUT,
            {"checked_out_at": self.clock()},
        )

    def cancel(
        self, reservation_id: str, owner_id: str, reason: Optional[str] = None
    ) -> ReservationRecord:
        """
        Cancel a PENDING, CONFIRMED or CHECKED_IN reservation.

        The row is kept; its dates become available again because overlap
        queries skip CANCELLED reservations.

        Raises:
            ValidationError: Already cancelled, completed or otherwise terminal,
                or a reason shorter than 5 characters
        """
        data = parse_payload(CancelPayload, {"reason": reason})
        return self._apply_transition(
            reservation_id,
            owner_id,
            LifecycleEvent.CANCEL,
            {"cancelled_at": self.clock(), "cancellation_reason": data.reason},
        )

    def mark_no_show(self, reservation_id: str, owner_id: str) -> ReservationRecord:
        """Any non-terminal status -> NO_SHOW. Set manually; there is no time-based trigger."""
        return self._apply_transition(reservation_id, owner_id, LifecycleEvent.MARK_NO_SHOW)

    # -------------------------------------------------------------------------
    # Payments and administration
    # -------------------------------------------------------------------------

    def record_payment(
        self, reservation_id: str, owner_id: str, amount: Union[Decimal, int, str]
    ) -> ReservationRecord:
        """
        Apply a received payment to the reservation balance.

        Raises:
            ValidationError: Non-positive amount
            NotFoundError: Unknown reservation
            ForbiddenError: Reservation belongs to another owner
        """
        try:
            value = Decimal(str(amount))
        except ArithmeticError as e:
            raise ValidationError("Payment amount must be a number", {"amount": str(amount)}) from e
        if not value.is_finite():
            raise ValidationError("Payment amount must be a number", {"amount": str(amount)})

        with store_errors("record_payment"), self.engine.begin() as conn:
            self._load_owned(conn, reservation_id, owner_id)
            updated = record_payment(conn, reservation_id, value)

        logger.info(
            "reservation_payment_recorded",
            reservation_id=reservation_id,
            amount=str(value),
            payment_status=updated.payment_status.value,
        )
        return updated

    def delete(self, reservation_id: str, owner_id: str) -> None:
        """Administrative hard delete. Bypasses lifecycle rules."""
        with store_errors("delete"), self.engine.begin() as conn:
            self._load_owned(conn, reservation_id, owner_id)
            delete_reservation(conn, reservation_id)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, reservation_id: str, owner_id: str) -> ReservationRecord:
        with store_errors("get"), self.engine.connect() as conn:
            return self._load_owned(conn, reservation_id, owner_id)

    def list(
        self,
        owner_id: str,
        filters: Union[ReservationFilters, dict[str, Any], None] = None,
    ) -> list[ReservationRecord]:
        parsed = parse_payload(ReservationFilters, filters) if filters is not None else None
        with store_errors("list"), self.engine.connect() as conn:
            return list_reservations(conn, owner_id, parsed)

    @staticmethod
    def _check_window(days: int) -> None:
        if not 1 <= days <= MAX_UPCOMING_DAYS:
            raise ValidationError(
                f"days must be between 1 and {MAX_UPCOMING_DAYS}", {"days": days}
            )

    def upcoming_check_ins(
        self, owner_id: str, days: int = UPCOMING_WINDOW_DAYS
    ) -> list[ReservationRecord]:
        self._check_window(days)
        with store_errors("upcoming_check_ins"), self.engine.connect() as conn:
            return get_upcoming_check_ins(conn, owner_id, self.clock(), days)

    def upcoming_check_outs(
        self, owner_id: str, days: int = UPCOMING_WINDOW_DAYS
    ) -> list[ReservationRecord]:
        self._check_window(days)
        with store_errors("upcoming_check_outs"), self.engine.connect() as conn:
            return get_upcoming_check_outs(conn, owner_id, self.clock(), days)

    def statistics(self, owner_id: str) -> ReservationStatistics:
        with store_errors("statistics"), self.engine.connect() as conn:
            return count_by_status(conn, owner_id)
