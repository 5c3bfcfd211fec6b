"""Admission application: application number is assigned once at submission and never changes."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text

from campus.core.enums import AdmissionStatus
from campus.core.ids import PREFIX_ADMISSION, generate_id
from campus.db.session import Base


class Admission(Base):
    __tablename__ = "admissions"

    id = Column(String(40), primary_key=True, default=lambda: generate_id(PREFIX_ADMISSION))
    application_number = Column(String(40), nullable=False, unique=True, index=True)
    applicant_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    mobile = Column(String(50), nullable=True)
    applied_course = Column(String(100), nullable=True)
    applied_branch = Column(String(100), nullable=True)
    academic_year = Column(Integer, nullable=False)
    status = Column(String(30), nullable=False, default=AdmissionStatus.submitted.value)
    reviewed_by = Column(String(40), nullable=True)
    review_comments = Column(Text, nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
