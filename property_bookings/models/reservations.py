# models/reservations.py

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from property_bookings.models.base import Base
from property_bookings.models.enums import BookingSource, PaymentStatus, ReservationStatus


class Reservation(Base):
    """
    ORM model for reservations (bookings) of a property.

    Each row holds one stay over the half-open interval [check_in, check_out),
    the commercial terms captured at booking time and the lifecycle status.
    Cancelled and no-show rows stay in the table; overlap checks filter them
    out by status.
    """

    __tablename__ = "reservations"
    __table_args__ = (
        UniqueConstraint("booking_reference", name="uq_reservations_booking_reference"),
        UniqueConstraint("property_id", "external_id", name="uq_reservations_property_external_id"),
        CheckConstraint("check_in < check_out", name="ck_reservations_interval"),
        CheckConstraint("number_of_guests > 0", name="ck_reservations_guests_positive"),
        Index("ix_reservations_property_status", "property_id", "status"),
        Index("ix_reservations_property_dates", "property_id", "check_in", "check_out"),
        Index("ix_reservations_owner_status", "owner_id", "status"),
    )

    id = Column(String(36), primary_key=True)
    booking_reference = Column(String(100), nullable=False)
    owner_id = Column(String(64), nullable=False)
    property_id = Column(
        String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
    )
    tenant_id = Column(String(64), nullable=True, index=True)
    guest_name = Column(String(100), nullable=True)
    guest_email = Column(String(255), nullable=True)
    guest_phone = Column(String(20), nullable=True)
    number_of_guests = Column(Integer, nullable=False, server_default="1")

    check_in = Column(DateTime(timezone=True), nullable=False)
    check_out = Column(DateTime(timezone=True), nullable=False)
    number_of_nights = Column(Integer, nullable=False)

    base_rate = Column(Numeric(10, 2), nullable=False)
    cleaning_fee = Column(Numeric(10, 2), nullable=False, server_default="0")
    service_fee = Column(Numeric(10, 2), nullable=False, server_default="0")
    total_amount = Column(Numeric(10, 2), nullable=False)
    amount_paid = Column(Numeric(10, 2), nullable=False, server_default="0")
    amount_due = Column(Numeric(10, 2), nullable=False)
    payment_status = Column(
        String(20), nullable=False, server_default=PaymentStatus.PENDING.value
    )

    status = Column(String(20), nullable=False, server_default=ReservationStatus.PENDING.value)
    source = Column(String(20), nullable=False, server_default=BookingSource.DIRECT.value)
    external_id = Column(String(255), nullable=True)  # Uid from a synced external calendar

    guest_notes = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    checked_out_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
