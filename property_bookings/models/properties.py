# models/properties.py

from sqlalchemy import Column, DateTime, Integer, Numeric, String
from sqlalchemy.sql import func

from property_bookings.models.base import Base


class Property(Base):
    """
    ORM model for the rentable properties reservations are admitted against.

    The hosting application owns this table; admission only reads the pricing
    and stay-length columns and row-locks it to serialize bookings per property.
    """

    __tablename__ = "properties"

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(64), nullable=False, index=True)  # Managing account
    name = Column(String(255), nullable=False)
    daily_rate = Column(Numeric(10, 2), nullable=True)
    cleaning_fee = Column(Numeric(10, 2), nullable=True)
    minimum_stay = Column(Integer, nullable=True)  # Nights
    maximum_stay = Column(Integer, nullable=True)  # Nights
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
