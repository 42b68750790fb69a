from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Both the properties and reservations tables hang off this metadata, which
    is what Alembic autogenerate and the test fixtures create from.
    """

    pass
