"""Exam and exam registration. At most one 'registered' row per (exam, student), enforced by a partial unique index."""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    text,
)
from sqlalchemy.orm import relationship

from campus.core.enums import ExamStatus, RegistrationPaymentStatus, RegistrationStatus
from campus.core.ids import PREFIX_EXAM, PREFIX_REGISTRATION, generate_id
from campus.db.session import Base


class Exam(Base):
    __tablename__ = "exams"
    __table_args__ = (
        CheckConstraint("registration_start <= registration_end", name="chk_exam_registration_window"),
    )

    id = Column(String(40), primary_key=True, default=lambda: generate_id(PREFIX_EXAM))
    name = Column(String(255), nullable=False)
    exam_type = Column(String(50), nullable=False)  # midterm, final, supplementary
    academic_year = Column(String(20), nullable=False)
    semester = Column(Integer, nullable=False)
    registration_start = Column(DateTime(timezone=True), nullable=False)
    registration_end = Column(DateTime(timezone=True), nullable=False)
    start_date = Column(DateTime(timezone=True), nullable=True)
    # ["CS", "EE"]
    eligible_branches = Column(JSON, nullable=False, default=list)
    # [{"subject_code": "CS101", "subject_name": "Programming"}]
    subjects = Column(JSON, nullable=False, default=list)
    per_subject_fee = Column(Numeric(12, 2), nullable=False)
    status = Column(String(30), nullable=False, default=ExamStatus.upcoming.value)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)


_ACTIVE_REGISTRATION = text("status = 'registered'")


class ExamRegistration(Base):
    __tablename__ = "exam_registrations"
    __table_args__ = (
        Index(
            "uq_exam_registration_active",
            "exam_id",
            "student_id",
            unique=True,
            sqlite_where=_ACTIVE_REGISTRATION,
            postgresql_where=_ACTIVE_REGISTRATION,
        ),
        CheckConstraint("status IN ('registered','cancelled')", name="chk_exam_registration_status"),
    )

    id = Column(String(40), primary_key=True, default=lambda: generate_id(PREFIX_REGISTRATION))
    exam_id = Column(String(40), ForeignKey("exams.id", ondelete="RESTRICT"), nullable=False, index=True)
    student_id = Column(String(40), ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    # [{"subject_code": "CS101", "subject_name": "...", "registration_fee": "100.00"}]
    registered_subjects = Column(JSON, nullable=False, default=list)
    total_fee = Column(Numeric(12, 2), nullable=False)
    payment_status = Column(String(20), nullable=False, default=RegistrationPaymentStatus.pending.value)
    status = Column(String(20), nullable=False, default=RegistrationStatus.registered.value)
    version = Column(Integer, nullable=False, default=1)
    registered_at = Column(DateTime(timezone=True), nullable=False)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    exam = relationship("Exam")
    student = relationship("Student")
