from sqlalchemy import select
from sqlalchemy.engine import Connection

from hostel_bookings.domain.records import PaymentRecord
from hostel_bookings.models.payments import Payment


def list_payments(conn: Connection, booking_id: str) -> list[PaymentRecord]:
    """
    Return a booking's payment ledger, newest first.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        booking_id (str): Booking ID.

    Returns:
        list[PaymentRecord]: Payments recorded against the booking.
    """
    result = conn.execute(
        select(Payment)
        .where(Payment.booking_id == booking_id)
        .order_by(Payment.payment_date.desc())
    )
    return [PaymentRecord.model_validate(dict(row._mapping)) for row in result]
