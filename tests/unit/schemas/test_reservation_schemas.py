"""Unit tests for reservation payload validation."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from property_bookings.models.enums import BookingSource
from property_bookings.schemas.reservations import (
    CancelPayload,
    ReservationCreatePayload,
    ReservationRecord,
    ReservationUpdatePayload,
)


def _payload(**overrides):
    payload = {
        "property_id": "prop-1",
        "guest_name": "Ada Guest",
        "check_in": "2025-03-10",
        "check_out": "2025-03-15",
    }
    payload.update(overrides)
    return payload


@pytest.mark.unit
def test_create_payload_defaults_and_date_parsing():
    """Test defaults and conversion of ISO dates to aware UTC datetimes."""
    data = ReservationCreatePayload.model_validate(_payload())

    assert data.check_in == datetime(2025, 3, 10, tzinfo=timezone.utc)
    assert data.check_out == datetime(2025, 3, 15, tzinfo=timezone.utc)
    assert data.number_of_guests == 1
    assert data.source == BookingSource.DIRECT
    assert data.total_amount is None


@pytest.mark.unit
def test_create_payload_requires_tenant_or_guest_name():
    """Test that a booking needs someone to stay."""
    with pytest.raises(PydanticValidationError, match="Either tenant_id or guest_name"):
        ReservationCreatePayload.model_validate(_payload(guest_name=None))

    data = ReservationCreatePayload.model_validate(_payload(guest_name=None, tenant_id="t-1"))
    assert data.tenant_id == "t-1"


@pytest.mark.unit
def test_create_payload_rejects_reversed_dates():
    """Test that check-out must follow check-in."""
    with pytest.raises(PydanticValidationError, match="Check-out date must be after"):
        ReservationCreatePayload.model_validate(
            _payload(check_in="2025-03-15", check_out="2025-03-10")
        )


@pytest.mark.unit
@pytest.mark.parametrize(
    "overrides",
    [
        {"check_in": "next tuesday"},
        {"guest_email": "not-an-email"},
        {"guest_phone": "123"},
        {"number_of_guests": 0},
        {"number_of_guests": 51},
        {"total_amount": "0"},
        {"source": "FAX"},
        {"guest_name": "A"},
    ],
)
def test_create_payload_field_rules(overrides):
    """Test individual field constraints."""
    with pytest.raises(PydanticValidationError):
        ReservationCreatePayload.model_validate(_payload(**overrides))


@pytest.mark.unit
def test_create_payload_accepts_explicit_total():
    """Test that a positive explicit total is kept as Decimal."""
    data = ReservationCreatePayload.model_validate(_payload(total_amount="4200.50"))

    assert data.total_amount == Decimal("4200.50")


@pytest.mark.unit
def test_update_payload_changes_dates():
    """Test the changes_dates flag."""
    assert ReservationUpdatePayload().changes_dates is False
    assert ReservationUpdatePayload(check_out="2025-03-20").changes_dates is True
    assert ReservationUpdatePayload(guest_name="New Name").changes_dates is False


@pytest.mark.unit
def test_update_payload_rejects_reversed_dates():
    """Test date ordering when both dates are edited."""
    with pytest.raises(PydanticValidationError):
        ReservationUpdatePayload(check_in="2025-03-20", check_out="2025-03-18")


@pytest.mark.unit
def test_cancel_reason_length():
    """Test the cancellation reason bounds."""
    assert CancelPayload(reason=None).reason is None
    assert CancelPayload(reason="Guest changed plans").reason == "Guest changed plans"
    with pytest.raises(PydanticValidationError):
        CancelPayload(reason="no")


@pytest.mark.unit
def test_record_normalizes_naive_datetimes_to_utc():
    """Test that naive timestamps read back from SQLite become aware UTC."""
    naive = datetime(2025, 3, 10, 0, 0)
    record = ReservationRecord.model_validate(
        {
            "id": "r-1",
            "booking_reference": "BK-20250301-ABCDEF12",
            "owner_id": "owner-1",
            "property_id": "prop-1",
            "number_of_guests": 1,
            "check_in": naive,
            "check_out": datetime(2025, 3, 15),
            "number_of_nights": 5,
            "base_rate": Decimal("100"),
            "cleaning_fee": Decimal("0"),
            "service_fee": Decimal("0"),
            "total_amount": Decimal("500"),
            "amount_paid": Decimal("0"),
            "amount_due": Decimal("500"),
            "payment_status": "PENDING",
            "status": "CONFIRMED",
            "source": "DIRECT",
            "created_at": naive,
            "updated_at": naive,
        }
    )

    assert record.check_in.tzinfo == timezone.utc
    assert record.check_in == datetime(2025, 3, 10, tzinfo=timezone.utc)
    assert record.cancelled_at is None


@pytest.mark.unit
@pytest.mark.parametrize("email", ["a@b..c", '"@x.y', "ada@", "@gmail.com"])
def test_malformed_guest_emails_are_rejected(email):
    """Test that structurally invalid addresses fail on create and update."""
    with pytest.raises(PydanticValidationError):
        ReservationCreatePayload.model_validate(_payload(guest_email=email))
    with pytest.raises(PydanticValidationError):
        ReservationUpdatePayload(guest_email=email)


@pytest.mark.unit
def test_valid_guest_email_is_accepted():
    """Test that a well-formed address passes."""
    data = ReservationCreatePayload.model_validate(_payload(guest_email="ada.guest@gmail.com"))

    assert data.guest_email == "ada.guest@gmail.com"
