"""Student: read-only reference record for the allocation services (branch drives exam eligibility)."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from campus.core.ids import PREFIX_STUDENT, generate_id
from campus.db.session import Base


class Student(Base):
    __tablename__ = "students"

    id = Column(String(40), primary_key=True, default=lambda: generate_id(PREFIX_STUDENT))
    roll_number = Column(String(50), nullable=True, unique=True)
    name = Column(String(255), nullable=False)
    course = Column(String(100), nullable=True)
    branch = Column(String(100), nullable=True)
    semester = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
