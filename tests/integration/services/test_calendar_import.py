"""
Integration tests for importing external calendar events.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from property_bookings.errors import ForbiddenError, NotFoundError
from property_bookings.models.enums import BookingSource, ReservationStatus
from property_bookings.schemas.reservations import ExternalCalendarEvent


def d(day: int) -> datetime:
    return datetime(2025, 3, day, tzinfo=timezone.utc)


def _event(uid: str, start: str, end: str, summary: str = "Airbnb (Not available)") -> dict:
    return {"uid": uid, "summary": summary, "start": start, "end": end}


@pytest.mark.integration
def test_import_creates_confirmed_reservations(sync_service, service, create_property):
    """Test that new events become confirmed zero-amount reservations."""
    property_id = create_property()

    result = sync_service.import_events(
        "owner-1",
        property_id,
        [
            _event("uid-1@airbnb.com", "2025-03-10", "2025-03-15"),
            ExternalCalendarEvent(uid="uid-2@airbnb.com", start=d(20), end=d(22)),
        ],
        source=BookingSource.AIRBNB,
    )

    assert (result.imported, result.updated, result.skipped) == (2, 0, 0)
    assert result.errors == []

    records = service.list("owner-1", {"property_id": property_id})
    first = next(r for r in records if r.external_id == "uid-1@airbnb.com")
    assert first.status == ReservationStatus.CONFIRMED
    assert first.source == BookingSource.AIRBNB
    assert first.booking_reference.startswith("EXT-AIRBNB-")
    assert first.total_amount == Decimal("0.00")
    assert first.number_of_nights == 5
    assert first.guest_name == "Airbnb (Not available)"


@pytest.mark.integration
def test_reimport_is_idempotent_and_updates_moved_events(sync_service, service, create_property):
    """Test dedup on external id: unchanged events skip, moved events update in place."""
    property_id = create_property()
    events = [
        _event("uid-1", "2025-03-10", "2025-03-15"),
        _event("uid-2", "2025-03-20", "2025-03-22"),
    ]
    sync_service.import_events("owner-1", property_id, events)

    result = sync_service.import_events(
        "owner-1",
        property_id,
        [
            _event("uid-1", "2025-03-10", "2025-03-15"),
            _event("uid-2", "2025-03-20", "2025-03-24"),
        ],
    )

    assert (result.imported, result.updated, result.skipped) == (0, 1, 1)
    records = service.list("owner-1", {"property_id": property_id})
    assert len(records) == 2
    moved = next(r for r in records if r.external_id == "uid-2")
    assert moved.check_out == d(24)
    assert moved.number_of_nights == 4


@pytest.mark.integration
def test_import_skips_past_events_and_reports_conflicts(
    sync_service, service, create_property, booking_payload
):
    """Test that past events are skipped and overlaps are reported, not admitted."""
    property_id = create_property()
    direct = service.create("owner-1", booking_payload(property_id))

    result = sync_service.import_events(
        "owner-1",
        property_id,
        [
            _event("past", "2025-02-01", "2025-02-05"),
            _event("clash", "2025-03-12", "2025-03-14"),
            _event("reversed", "2025-03-28", "2025-03-25"),
            _event("fine", "2025-03-15", "2025-03-18"),
        ],
    )

    assert result.imported == 1
    assert result.skipped == 1
    assert len(result.errors) == 2
    assert result.errors[0].startswith("Failed to sync event clash:")
    assert result.errors[1].startswith("Failed to sync event reversed:")

    records = service.list("owner-1", {"property_id": property_id})
    assert sorted(r.external_id or "" for r in records) == ["", "fine"]
    assert any(r.id == direct.id for r in records)


@pytest.mark.integration
def test_import_requires_owned_property(sync_service, create_property):
    """Test NotFoundError and ForbiddenError for the target property."""
    foreign_property = create_property(owner_id="owner-2")

    with pytest.raises(NotFoundError):
        sync_service.import_events("owner-1", "no-such-property", [])
    with pytest.raises(ForbiddenError):
        sync_service.import_events(
            "owner-1", foreign_property, [_event("uid-1", "2025-03-10", "2025-03-15")]
        )
