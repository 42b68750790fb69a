from typing import Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from property_bookings.models.properties import Property
from property_bookings.schemas.reservations import PropertyRecord

properties = Property.__table__


def get_property(conn: Connection, property_id: str) -> Optional[PropertyRecord]:
    """
    Fetch the admission-relevant fields of a property.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        property_id (str): Property ID.

    Returns:
        Optional[PropertyRecord]: The property, or None if it does not exist.
    """
    row = conn.execute(select(properties).where(properties.c.id == property_id)).fetchone()
    return PropertyRecord.model_validate(dict(row._mapping)) if row else None


def lock_property(conn: Connection, property_id: str) -> Optional[PropertyRecord]:
    """
    Fetch a property and hold its row lock until the transaction ends.

    Every date-changing write for a property starts with this call inside the
    same transaction as its overlap query and INSERT/UPDATE, so concurrent
    admissions for one property run one after another. On SQLite the FOR UPDATE
    clause is dropped and the engine's BEGIN IMMEDIATE provides the exclusion.

    Args:
        conn (Connection): Connection inside an open transaction (engine.begin()).
        property_id (str): Property ID.

    Returns:
        Optional[PropertyRecord]: The locked property, or None if it does not exist.
    """
    row = conn.execute(
        select(properties).where(properties.c.id == property_id).with_for_update()
    ).fetchone()
    return PropertyRecord.model_validate(dict(row._mapping)) if row else None
