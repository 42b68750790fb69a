"""
Integration tests for concurrent admissions against the same property.
"""

from __future__ import annotations

import threading
from typing import Any

import pytest

from property_bookings.errors import AvailabilityConflict


@pytest.mark.integration
@pytest.mark.parametrize(
    "first_dates,second_dates",
    [
        (("2025-03-10", "2025-03-15"), ("2025-03-10", "2025-03-15")),
        (("2025-03-10", "2025-03-15"), ("2025-03-12", "2025-03-18")),
    ],
)
def test_only_one_of_two_racing_overlapping_bookings_is_admitted(
    service, create_property, booking_payload, first_dates, second_dates
):
    """Test that two threads booking overlapping dates at once never both succeed."""
    property_id = create_property()
    barrier = threading.Barrier(2)
    admitted: list[Any] = []
    rejected: list[AvailabilityConflict] = []
    unexpected: list[BaseException] = []

    def book(check_in: str, check_out: str) -> None:
        payload = booking_payload(property_id, check_in=check_in, check_out=check_out)
        barrier.wait()
        try:
            admitted.append(service.create("owner-1", payload))
        except AvailabilityConflict as e:
            rejected.append(e)
        except BaseException as e:  # surfaced by the assertions below
            unexpected.append(e)

    threads = [
        threading.Thread(target=book, args=first_dates),
        threading.Thread(target=book, args=second_dates),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert unexpected == []
    assert len(admitted) == 1
    assert len(rejected) == 1
    assert [c.id for c in rejected[0].conflicts] == [admitted[0].id]
    assert len(service.list("owner-1", {"property_id": property_id})) == 1


@pytest.mark.integration
def test_racing_bookings_for_different_properties_both_succeed(
    service, create_property, booking_payload
):
    """Test that serialization does not reject bookings on separate properties."""
    property_ids = [create_property(), create_property()]
    barrier = threading.Barrier(2)
    admitted: list[Any] = []
    failed: list[BaseException] = []

    def book(property_id: str) -> None:
        barrier.wait()
        try:
            admitted.append(service.create("owner-1", booking_payload(property_id)))
        except BaseException as e:  # surfaced by the assertions below
            failed.append(e)

    threads = [threading.Thread(target=book, args=(pid,)) for pid in property_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert failed == []
    assert sorted(r.property_id for r in admitted) == sorted(property_ids)
