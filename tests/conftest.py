"""
Shared fixtures for property_bookings tests.

Integration tests run against a throwaway SQLite file per test, created from
the ORM metadata. The module-level engine in property_bookings.db.engine needs
DATABASE_URL at import time, so a default is set before anything imports it.
"""

from __future__ import annotations

import os
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Generator, Optional

os.environ.setdefault("DATABASE_URL", "sqlite:///./property_bookings_test.db")

import pytest  # noqa: E402
from sqlalchemy import insert  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402

from property_bookings.db.engine import build_engine  # noqa: E402
from property_bookings.models.base import Base  # noqa: E402
from property_bookings.models.properties import Property  # noqa: E402
from property_bookings.models.reservations import Reservation  # noqa: E402,F401
from property_bookings.services.calendar_sync import CalendarSyncService  # noqa: E402
from property_bookings.services.reservations import ReservationService  # noqa: E402

# Fixed "current time" for every service under test
NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)

OWNER_ID = "owner-1"
OTHER_OWNER_ID = "owner-2"


@pytest.fixture
def db_engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """
    SQLite engine backed by a fresh file with all tables created.

    A file (not :memory:) so that several threads see the same database.
    """
    engine = build_engine(f"sqlite:///{tmp_path / 'bookings.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def create_property(db_engine: Engine) -> Callable[..., str]:
    """
    Factory inserting a property row and returning its id.

    Defaults: owned by OWNER_ID, 1000.00/night, 200.00 cleaning fee, no stay limits.
    """

    def _create(
        owner_id: str = OWNER_ID,
        daily_rate: Optional[str] = "1000.00",
        cleaning_fee: Optional[str] = "200.00",
        minimum_stay: Optional[int] = None,
        maximum_stay: Optional[int] = None,
        **extra: Any,
    ) -> str:
        property_id = str(uuid.uuid4())
        with db_engine.begin() as conn:
            conn.execute(
                insert(Property.__table__).values(
                    id=property_id,
                    owner_id=owner_id,
                    name=extra.get("name", "Seaside Apartment"),
                    daily_rate=Decimal(daily_rate) if daily_rate is not None else None,
                    cleaning_fee=Decimal(cleaning_fee) if cleaning_fee is not None else None,
                    minimum_stay=minimum_stay,
                    maximum_stay=maximum_stay,
                    created_at=NOW,
                    updated_at=NOW,
                )
            )
        return property_id

    return _create


@pytest.fixture
def service(db_engine: Engine) -> ReservationService:
    return ReservationService(db_engine, clock=lambda: NOW)


@pytest.fixture
def sync_service(db_engine: Engine) -> CalendarSyncService:
    return CalendarSyncService(db_engine, clock=lambda: NOW)


@pytest.fixture
def booking_payload() -> Callable[..., dict[str, Any]]:
    """Factory for a valid create payload; keyword arguments override fields."""

    def _payload(property_id: str, **overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "property_id": property_id,
            "guest_name": "Ada Guest",
            "guest_email": "ada.guest@gmail.com",
            "guest_phone": "+15551234567",
            "check_in": "2025-03-10",
            "check_out": "2025-03-15",
            "number_of_guests": 2,
        }
        payload.update(overrides)
        return payload

    return _payload
