"""Unit tests for the order of steps inside an admission transaction."""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock, Mock, patch

import pytest
from sqlalchemy.exc import OperationalError

from property_bookings.errors import (
    AvailabilityConflict,
    ForbiddenError,
    NotFoundError,
    StoreUnavailable,
    ValidationError,
)
from property_bookings.models.enums import AvailabilityReason
from property_bookings.schemas.reservations import AvailabilityResult, PropertyRecord
from property_bookings.services.reservations import ReservationService

NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)

PAYLOAD = {
    "property_id": "prop-1",
    "guest_name": "Ada Guest",
    "check_in": "2025-03-10",
    "check_out": "2025-03-15",
}


def _property(owner_id: str = "owner-1") -> PropertyRecord:
    return PropertyRecord(
        id="prop-1",
        owner_id=owner_id,
        name="Seaside Apartment",
        daily_rate=Decimal("1000"),
        cleaning_fee=Decimal("200"),
    )


def _service() -> tuple[ReservationService, MagicMock]:
    mock_engine = MagicMock()
    return ReservationService(mock_engine, clock=lambda: NOW), mock_engine


@pytest.mark.unit
@patch("property_bookings.services.reservations.insert_reservation")
@patch("property_bookings.services.reservations.check_availability")
@patch("property_bookings.services.reservations.lock_property")
def test_create_locks_property_before_checking_and_inserting(
    mock_lock: Mock,
    mock_check: Mock,
    mock_insert: Mock,
) -> None:
    """Test that lock, availability check and insert run in that order on one connection."""
    manager = Mock()
    manager.attach_mock(mock_lock, "lock_property")
    manager.attach_mock(mock_check, "check_availability")
    manager.attach_mock(mock_insert, "insert_reservation")

    mock_lock.return_value = _property()
    mock_check.return_value = AvailabilityResult(available=True, nights=5)

    service, mock_engine = _service()
    service.create("owner-1", PAYLOAD)

    steps = {"lock_property", "check_availability", "insert_reservation"}
    names = [call[0] for call in manager.mock_calls if call[0] in steps]
    assert names == ["lock_property", "check_availability", "insert_reservation"]

    conn = mock_engine.begin.return_value.__enter__.return_value
    assert mock_lock.call_args.args[0] is conn
    assert mock_check.call_args.args[0] is conn
    assert mock_insert.call_args.args[0] is conn
    mock_engine.begin.assert_called_once()


@pytest.mark.unit
@patch("property_bookings.services.reservations.insert_reservation")
@patch("property_bookings.services.reservations.check_availability")
@patch("property_bookings.services.reservations.lock_property")
def test_create_computes_pricing_into_inserted_row(
    mock_lock: Mock,
    mock_check: Mock,
    mock_insert: Mock,
) -> None:
    """Test the commercial terms written for a computed-price booking."""
    mock_lock.return_value = _property()
    mock_check.return_value = AvailabilityResult(available=True, nights=5)

    service, _ = _service()
    service.create("owner-1", PAYLOAD)

    values = mock_insert.call_args.args[1]
    assert values["status"] == "CONFIRMED"
    assert values["number_of_nights"] == 5
    assert values["base_rate"] == Decimal("1000.00")
    assert values["service_fee"] == Decimal("250.00")
    assert values["total_amount"] == Decimal("5450.00")
    assert values["amount_paid"] == Decimal("0.00")
    assert values["amount_due"] == Decimal("5450.00")
    assert values["booking_reference"].startswith("BK-20250301-")


@pytest.mark.unit
@patch("property_bookings.services.reservations.insert_reservation")
@patch("property_bookings.services.reservations.check_availability")
@patch("property_bookings.services.reservations.lock_property")
def test_create_rejected_availability_never_inserts(
    mock_lock: Mock,
    mock_check: Mock,
    mock_insert: Mock,
) -> None:
    """Test that a negative availability result raises and skips the insert."""
    mock_lock.return_value = _property()
    mock_check.return_value = AvailabilityResult(
        available=False, reason=AvailabilityReason.MINIMUM_STAY, bound=7, nights=5
    )

    service, _ = _service()
    with pytest.raises(AvailabilityConflict) as exc_info:
        service.create("owner-1", PAYLOAD)

    assert exc_info.value.reason == AvailabilityReason.MINIMUM_STAY
    assert exc_info.value.bound == 7
    mock_insert.assert_not_called()


@pytest.mark.unit
@patch("property_bookings.services.reservations.check_availability")
@patch("property_bookings.services.reservations.lock_property")
def test_create_unknown_property(mock_lock: Mock, mock_check: Mock) -> None:
    """Test NotFoundError when the property row does not exist."""
    mock_lock.return_value = None

    service, _ = _service()
    with pytest.raises(NotFoundError):
        service.create("owner-1", PAYLOAD)

    mock_check.assert_not_called()


@pytest.mark.unit
@patch("property_bookings.services.reservations.check_availability")
@patch("property_bookings.services.reservations.lock_property")
def test_create_for_someone_elses_property(mock_lock: Mock, mock_check: Mock) -> None:
    """Test ForbiddenError when the property belongs to another owner."""
    mock_lock.return_value = _property(owner_id="owner-2")

    service, _ = _service()
    with pytest.raises(ForbiddenError):
        service.create("owner-1", PAYLOAD)

    mock_check.assert_not_called()


@pytest.mark.unit
def test_create_invalid_payload_never_opens_a_transaction() -> None:
    """Test that payload validation happens before touching the store."""
    service, mock_engine = _service()

    with pytest.raises(ValidationError) as exc_info:
        service.create("owner-1", {**PAYLOAD, "number_of_guests": 0})

    fields = [e["field"] for e in exc_info.value.details["errors"]]
    assert "number_of_guests" in fields
    mock_engine.begin.assert_not_called()


@pytest.mark.unit
def test_unreachable_store_raises_store_unavailable() -> None:
    """Test that connectivity failures surface as StoreUnavailable."""
    service, mock_engine = _service()
    mock_engine.begin.side_effect = OperationalError(
        "BEGIN", {}, Exception("could not connect to server")
    )

    with pytest.raises(StoreUnavailable) as exc_info:
        service.create("owner-1", PAYLOAD)

    assert exc_info.value.details == {"operation": "create"}
