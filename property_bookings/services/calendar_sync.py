"""
Import of externally synced calendar events as reservations.

Events come in already parsed (uid, summary, start, end). Each one is applied in
its own transaction under the property lock, so a conflicting or malformed event
is reported in the result without aborting the rest of the batch.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional, Union

import structlog
from sqlalchemy.engine import Connection, Engine

from property_bookings.db.engine import engine as default_engine
from property_bookings.db.readers.properties import get_property, lock_property
from property_bookings.db.readers.reservations import (
    find_overlapping,
    get_reservation_by_external_id,
)
from property_bookings.db.writers.reservations import insert_reservation, update_reservation
from property_bookings.domain.intervals import Interval
from property_bookings.domain.pricing import derive_payment_status
from property_bookings.errors import (
    AvailabilityConflict,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from property_bookings.metrics import admission_duration, admissions_total
from property_bookings.models.enums import (
    AvailabilityReason,
    BookingSource,
    ReservationStatus,
)
from property_bookings.schemas.reservations import (
    ExternalCalendarEvent,
    PropertyRecord,
    SyncResult,
)
from property_bookings.services.reservations import parse_payload, store_errors
from property_bookings.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

ZERO = Decimal("0.00")

# Outcomes of applying one event
IMPORTED = "imported"
UPDATED = "updated"
SKIPPED = "skipped"


def external_reference(source: BookingSource) -> str:
    return f"EXT-{source.value}-{uuid.uuid4().hex[:8].upper()}"


class CalendarSyncService:
    """
    Upserts external calendar events into the reservation store.

    Imported stays are deduplicated on (property_id, external_id) and go
    through the same non-overlap check as direct bookings. Minimum/maximum stay
    and the past check-in rule are not applied: the external platform already
    admitted the stay.
    """

    def __init__(
        self,
        engine: Optional[Engine] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.engine = engine or default_engine
        self.clock = clock

    def import_events(
        self,
        owner_id: str,
        property_id: str,
        events: list[Union[ExternalCalendarEvent, dict[str, Any]]],
        source: BookingSource = BookingSource.OTHER,
    ) -> SyncResult:
        """
        Import a batch of external calendar events for one property.

        Args:
            owner_id: Managing account that owns the property
            property_id: Property the calendar belongs to
            events: Parsed events (models or dicts with uid/summary/start/end)
            source: Booking channel the calendar comes from

        Returns:
            SyncResult: imported/updated/skipped counts and one message per failed event

        Raises:
            NotFoundError: Unknown property
            ForbiddenError: Property belongs to another owner
            StoreUnavailable: Database unreachable
        """
        result = SyncResult()
        now = self.clock()

        with store_errors("calendar_import"), self.engine.connect() as conn:
            self._verify_owned_property(get_property(conn, property_id), owner_id, property_id)

        for raw in events:
            uid = raw.uid if isinstance(raw, ExternalCalendarEvent) else raw.get("uid")
            try:
                event = parse_payload(ExternalCalendarEvent, raw)
                Interval(event.start, event.end)

                if event.end <= now:
                    result.skipped += 1
                    continue

                with admission_duration.labels(operation="calendar_import").time():
                    with store_errors("calendar_import"), self.engine.begin() as conn:
                        outcome = self._apply_event(
                            conn, owner_id, property_id, event, source, now
                        )
            except (ValidationError, AvailabilityConflict) as e:
                logger.warning(
                    "calendar_event_rejected",
                    property_id=property_id,
                    uid=uid,
                    error=e.message,
                )
                result.errors.append(f"Failed to sync event {uid}: {e.message}")
                continue

            if outcome == IMPORTED:
                result.imported += 1
            elif outcome == UPDATED:
                result.updated += 1
            else:
                result.skipped += 1

        logger.info(
            "calendar_import_completed",
            property_id=property_id,
            source=source.value,
            imported=result.imported,
            updated=result.updated,
            skipped=result.skipped,
            failed=len(result.errors),
        )
        return result

    @staticmethod
    def _verify_owned_property(
        property: Optional[PropertyRecord], owner_id: str, property_id: str
    ) -> PropertyRecord:
        if property is None:
            raise NotFoundError("Property", property_id)
        if property.owner_id != owner_id:
            raise ForbiddenError(
                "You do not have permission to sync this property",
                {"property_id": property_id},
            )
        return property

    def _apply_event(
        self,
        conn: Connection,
        owner_id: str,
        property_id: str,
        event: ExternalCalendarEvent,
        source: BookingSource,
        now: datetime,
    ) -> str:
        property = self._verify_owned_property(
            lock_property(conn, property_id), owner_id, property_id
        )
        existing = get_reservation_by_external_id(conn, property.id, event.uid)
        guest_name = (event.summary or "").strip()[:100] or None

        if existing is not None:
            if (
                existing.check_in == event.start
                and existing.check_out == event.end
                and existing.guest_name == guest_name
            ):
                return SKIPPED
            if existing.status not in (ReservationStatus.PENDING, ReservationStatus.CONFIRMED):
                return SKIPPED

        exclude_id = existing.id if existing is not None else None
        conflicts = find_overlapping(conn, property.id, event.start, event.end, exclude_id)
        if conflicts:
            admissions_total.labels(
                operation="calendar_import",
                outcome=AvailabilityReason.OVERLAPPING_RESERVATION.value.lower(),
            ).inc()
            raise AvailabilityConflict(
                "Property is not available for the selected dates",
                reason=AvailabilityReason.OVERLAPPING_RESERVATION,
                conflicts=conflicts,
                details={"property_id": property.id, "uid": event.uid},
            )
        admissions_total.labels(operation="calendar_import", outcome="admitted").inc()

        nights = Interval(event.start, event.end).nights

        if existing is not None:
            update_reservation(
                conn,
                existing.id,
                {
                    "check_in": event.start,
                    "check_out": event.end,
                    "number_of_nights": nights,
                    "guest_name": guest_name,
                },
            )
            return UPDATED

        record = insert_reservation(
            conn,
            {
                "id": str(uuid.uuid4()),
                "booking_reference": external_reference(source),
                "owner_id": owner_id,
                "property_id": property.id,
                "guest_name": guest_name,
                "number_of_guests": 1,
                "check_in": event.start,
                "check_out": event.end,
                "number_of_nights": nights,
                "base_rate": ZERO,
                "cleaning_fee": ZERO,
                "service_fee": ZERO,
                "total_amount": ZERO,
                "amount_paid": ZERO,
                "amount_due": ZERO,
                "payment_status": derive_payment_status(ZERO, ZERO).value,
                "status": ReservationStatus.CONFIRMED.value,
                "source": source.value,
                "external_id": event.uid,
                "guest_notes": event.description,
                "created_at": now,
                "updated_at": now,
            },
        )
        logger.info(
            "calendar_event_imported",
            reservation_id=record.id,
            booking_reference=record.booking_reference,
            property_id=property.id,
            uid=event.uid,
        )
        return IMPORTED
