from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from hostel_bookings.domain.records import StudentRecord
from hostel_bookings.models.catalog import Student


def get_student(conn: Connection, student_id: str) -> Optional[StudentRecord]:
    """
    Fetch a student's identity and declared gender from the user directory.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        student_id (str): Student (user) ID.

    Returns:
        Optional[StudentRecord]: The student or None if not found.
    """
    row = conn.execute(select(Student).where(Student.id == student_id)).fetchone()
    return StudentRecord.model_validate(dict(row._mapping)) if row else None


def get_genders(conn: Connection, student_ids: Iterable[str]) -> list[Optional[str]]:
    ids = list(student_ids)
    if not ids:
        return []
    result = conn.execute(select(Student.gender).where(Student.id.in_(ids)))
    return list(result.scalars().all())
