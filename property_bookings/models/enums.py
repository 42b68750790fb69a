"""Enumerations shared by the ORM tables, schemas and services."""

from enum import Enum


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


# Statuses that no longer hold their dates; overlap queries ignore them
INACTIVE_STATUSES = (ReservationStatus.CANCELLED, ReservationStatus.NO_SHOW)


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"


class BookingSource(str, Enum):
    DIRECT = "DIRECT"
    AIRBNB = "AIRBNB"
    BOOKING_COM = "BOOKING_COM"
    WEBSITE = "WEBSITE"
    REFERRAL = "REFERRAL"
    OTHER = "OTHER"


class AvailabilityReason(str, Enum):
    """Why an availability check said no."""

    OVERLAPPING_RESERVATION = "OVERLAPPING_RESERVATION"
    MINIMUM_STAY = "MINIMUM_STAY"
    MAXIMUM_STAY = "MAXIMUM_STAY"
