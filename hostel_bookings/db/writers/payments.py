from sqlalchemy import insert
from sqlalchemy.engine import Connection

from hostel_bookings.db.writers._columns import to_columns
from hostel_bookings.domain.records import PaymentRecord
from hostel_bookings.models.payments import Payment


def insert_payment(conn: Connection, payment: PaymentRecord) -> None:
    """Append one row to the payment ledger. Ledger rows are never updated."""
    conn.execute(insert(Payment).values(**to_columns(payment)))
