from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

# Constraint names must match the ones created by the Alembic migrations
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
}


class Base(DeclarativeBase):
    """
    Base class for the bookings ORM models.

    Tables live in the "rental" schema on PostgreSQL; tests translate the
    schema away so the same metadata can be created on SQLite.
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)
