from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)

from property_bookings.models.enums import (
    AvailabilityReason,
    BookingSource,
    PaymentStatus,
    ReservationStatus,
)
from property_bookings.utils.datetime import ensure_utc, parse_instant


def _coerce_instant(value: Any) -> Any:
    if value is None:
        return None
    try:
        return parse_instant(value)
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Invalid ISO-8601 date or datetime: {value!r}") from e


UtcInstant = Annotated[datetime, BeforeValidator(_coerce_instant)]


# =============================================================================
# Inbound payloads
# =============================================================================


class AvailabilityQuery(BaseModel):
    """
    Schema for an availability check. exclude_reservation_id is set for edits.
    """

    property_id: str = Field(..., min_length=1, description="Property ID")
    check_in: UtcInstant = Field(..., description="Check-in date or datetime (ISO-8601)")
    check_out: UtcInstant = Field(..., description="Check-out date or datetime (ISO-8601)")
    exclude_reservation_id: Optional[str] = Field(
        None, min_length=1, description="Reservation to ignore in the overlap check"
    )


class ReservationCreatePayload(BaseModel):
    """
    Schema for admitting a new reservation.

    Either tenant_id or guest contact fields identify who is staying.
    total_amount overrides computed pricing when given.
    """

    property_id: str = Field(..., min_length=1, description="Property ID")
    tenant_id: Optional[str] = Field(None, min_length=1, description="Tenant ID (optional)")
    guest_name: Optional[str] = Field(None, min_length=2, max_length=100)
    guest_email: Optional[EmailStr] = None
    guest_phone: Optional[str] = Field(None, min_length=10, max_length=20)
    check_in: UtcInstant = Field(..., description="Check-in date or datetime (ISO-8601)")
    check_out: UtcInstant = Field(..., description="Check-out date or datetime (ISO-8601)")
    number_of_guests: int = Field(1, ge=1, le=50)
    total_amount: Optional[Decimal] = Field(
        None, gt=0, description="Explicit total; skips computed pricing"
    )
    source: BookingSource = Field(BookingSource.DIRECT, description="Booking channel")
    external_id: Optional[str] = Field(None, max_length=255)
    special_requests: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def _check_identity_and_dates(self) -> ReservationCreatePayload:
        if not self.tenant_id and not self.guest_name:
            raise ValueError("Either tenant_id or guest_name is required")
        if self.check_out <= self.check_in:
            raise ValueError("Check-out date must be after check-in date")
        return self


class ReservationUpdatePayload(BaseModel):
    """
    Schema for editing a reservation. All fields are optional.
    Status is not editable here; use the lifecycle operations.
    """

    check_in: Optional[UtcInstant] = None
    check_out: Optional[UtcInstant] = None
    number_of_guests: Optional[int] = Field(None, ge=1, le=50)
    guest_name: Optional[str] = Field(None, min_length=2, max_length=100)
    guest_email: Optional[EmailStr] = None
    guest_phone: Optional[str] = Field(None, min_length=10, max_length=20)
    special_requests: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def _check_dates(self) -> ReservationUpdatePayload:
        if self.check_in and self.check_out and self.check_out <= self.check_in:
            raise ValueError("Check-out date must be after check-in date")
        return self

    @property
    def changes_dates(self) -> bool:
        return self.check_in is not None or self.check_out is not None


class CancelPayload(BaseModel):
    reason: Optional[str] = Field(None, min_length=5, max_length=500)


class ReservationFilters(BaseModel):
    """Optional filters for listing an owner's reservations."""

    property_id: Optional[str] = None
    status: Optional[ReservationStatus] = None
    source: Optional[BookingSource] = None
    start_date: Optional[UtcInstant] = None
    end_date: Optional[UtcInstant] = None
    search: Optional[str] = Field(None, max_length=100)


class ExternalCalendarEvent(BaseModel):
    """One blocked range from an externally synced calendar (already parsed)."""

    uid: str = Field(..., min_length=1)
    summary: Optional[str] = None
    start: UtcInstant
    end: UtcInstant
    description: Optional[str] = None


# =============================================================================
# Outbound records
# =============================================================================


class PropertyRecord(BaseModel):
    """The property fields admission reads."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    name: str
    daily_rate: Optional[Decimal] = None
    cleaning_fee: Optional[Decimal] = None
    minimum_stay: Optional[int] = None
    maximum_stay: Optional[int] = None


class ReservationRecord(BaseModel):
    """A stored reservation as returned to callers."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    booking_reference: str
    owner_id: str
    property_id: str
    tenant_id: Optional[str] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    number_of_guests: int
    check_in: datetime
    check_out: datetime
    number_of_nights: int
    base_rate: Decimal
    cleaning_fee: Decimal
    service_fee: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    amount_due: Decimal
    payment_status: PaymentStatus
    status: ReservationStatus
    source: BookingSource
    external_id: Optional[str] = None
    guest_notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    checked_in_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @field_validator(
        "check_in",
        "check_out",
        "checked_in_at",
        "checked_out_at",
        "cancelled_at",
        "created_at",
        "updated_at",
    )
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None


class PricingBreakdown(BaseModel):
    nights: int
    base_amount: Decimal
    cleaning_fee: Decimal
    service_fee: Decimal
    total_amount: Decimal


class AvailabilityResult(BaseModel):
    """
    Outcome of an availability check.

    reason is None when available; otherwise it distinguishes overlapping
    reservations (conflicts populated) from stay-length violations (bound set).
    """

    available: bool
    reason: Optional[AvailabilityReason] = None
    conflicts: list[ReservationRecord] = Field(default_factory=list)
    bound: Optional[int] = None
    nights: Optional[int] = None


class ReservationStatistics(BaseModel):
    total: int = 0
    confirmed: int = 0
    checked_in: int = 0
    completed: int = 0
    cancelled: int = 0


class SyncResult(BaseModel):
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)
