from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    The models describe tables only. Rows are read through Core connections
    and mapped onto the immutable records in hostel_bookings.domain.records,
    so no business logic lives on these classes.
    """

    pass
