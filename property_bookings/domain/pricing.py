"""Pure pricing and payment-status rules."""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from property_bookings.config import SERVICE_FEE_RATE
from property_bookings.domain.intervals import count_nights
from property_bookings.errors import ValidationError
from property_bookings.models.enums import PaymentStatus
from property_bookings.schemas.reservations import PricingBreakdown

CENTS = Decimal("0.01")


def to_money(value: Optional[Decimal | int | float | str]) -> Decimal:
    """Quantize to cents; None counts as zero."""
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_pricing(
    daily_rate: Optional[Decimal],
    cleaning_fee: Optional[Decimal],
    check_in: datetime,
    check_out: datetime,
    service_fee_rate: Decimal = SERVICE_FEE_RATE,
) -> PricingBreakdown:
    """
    Price a stay from the property's rate configuration.

    base_amount = nights x daily_rate
    service_fee = service_fee_rate x base_amount
    total_amount = base_amount + cleaning_fee + service_fee

    Args:
        daily_rate: Property nightly rate (None counts as 0)
        cleaning_fee: Fixed cleaning fee (None counts as 0)
        check_in: Stay start
        check_out: Stay end (exclusive)
        service_fee_rate: Fraction of the base amount charged as service fee

    Returns:
        PricingBreakdown with every amount quantized to cents

    Raises:
        ValidationError: If the interval covers less than one night
    """
    nights = count_nights(check_in, check_out)
    if nights < 1:
        raise ValidationError(
            "Booking must be at least 1 night",
            {
                "check_in": check_in.isoformat(),
                "check_out": check_out.isoformat(),
                "nights": nights,
            },
        )

    base_amount = to_money(to_money(daily_rate) * nights)
    fee = to_money(cleaning_fee)
    service_fee = to_money(base_amount * service_fee_rate)

    return PricingBreakdown(
        nights=nights,
        base_amount=base_amount,
        cleaning_fee=fee,
        service_fee=service_fee,
        total_amount=to_money(base_amount + fee + service_fee),
    )


def derive_payment_status(amount_paid: Decimal, total_amount: Decimal) -> PaymentStatus:
    if amount_paid >= total_amount:
        return PaymentStatus.PAID
    if amount_paid > 0:
        return PaymentStatus.PARTIALLY_PAID
    return PaymentStatus.PENDING
