"""
Exams service: exam setup and student registration.

A student holds at most one 'registered' row per exam. The check below gives
the caller a clean AlreadyRegistered; the partial unique index on
(exam_id, student_id) is what makes it hold when two calls race.
"""

from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campus.core.clock import Clock, as_utc, get_clock
from campus.core.config import settings
from campus.core.coordination import compare_and_swap, fetch_current, insert_once, run_optimistic
from campus.core.enums import ExamStatus, RegistrationPaymentStatus, RegistrationStatus
from campus.core.exceptions import (
    AlreadyRegisteredError,
    ExamNotFoundError,
    InvalidStateError,
    InvalidSubjectsError,
    NotEligibleError,
    RegistrationNotFoundError,
    RegistrationNotOpenError,
    StudentNotFoundError,
)
from campus.core.logging import get_logger
from campus.core.models import Exam, ExamRegistration, Student

from .schemas import ExamCreate, ExamResponse, ExamStatusUpdate, RegisteredSubject, RegistrationResponse

logger = get_logger("services.exams")


def _exam_to_response(exam: Exam) -> ExamResponse:
    return ExamResponse(
        id=exam.id,
        name=exam.name,
        exam_type=exam.exam_type,
        academic_year=exam.academic_year,
        semester=exam.semester,
        registration_start=as_utc(exam.registration_start),
        registration_end=as_utc(exam.registration_end),
        start_date=as_utc(exam.start_date),
        eligible_branches=list(exam.eligible_branches or []),
        subjects=exam.subjects or [],
        per_subject_fee=Decimal(str(exam.per_subject_fee)),
        status=exam.status,
        created_at=as_utc(exam.created_at),
    )


def _registration_to_response(r: ExamRegistration) -> RegistrationResponse:
    return RegistrationResponse(
        id=r.id,
        exam_id=r.exam_id,
        student_id=r.student_id,
        registered_subjects=[RegisteredSubject(**s) for s in (r.registered_subjects or [])],
        total_fee=Decimal(str(r.total_fee)),
        payment_status=r.payment_status,
        status=r.status,
        registered_at=as_utc(r.registered_at),
        cancelled_at=as_utc(r.cancelled_at),
    )


def _check_window(exam: Exam, clock: Clock) -> None:
    now = clock.now()
    if now < as_utc(exam.registration_start):
        raise RegistrationNotOpenError(RegistrationNotOpenError.NOT_YET_OPEN)
    if now > as_utc(exam.registration_end):
        raise RegistrationNotOpenError(RegistrationNotOpenError.CLOSED)


def _check_eligibility(student: Student, exam: Exam) -> None:
    eligible = list(exam.eligible_branches or [])
    if student.branch not in eligible:
        raise NotEligibleError(student.branch, eligible)


def _select_subjects(exam: Exam, subject_codes: List[str]) -> List[dict]:
    """Resolve requested codes against the exam's subjects, keeping request order."""
    codes = [(c or "").strip() for c in subject_codes]
    if not codes:
        raise InvalidSubjectsError([], "At least one subject must be selected")
    duplicates = sorted({c for c in codes if codes.count(c) > 1})
    if duplicates:
        raise InvalidSubjectsError(duplicates, f"Duplicate subjects: {', '.join(duplicates)}")

    by_code = {s["subject_code"]: s for s in (exam.subjects or [])}
    invalid = [c for c in codes if c not in by_code]
    if invalid:
        raise InvalidSubjectsError(invalid)

    fee = str(Decimal(str(exam.per_subject_fee)))
    return [
        {
            "subject_code": code,
            "subject_name": by_code[code]["subject_name"],
            "registration_fee": fee,
        }
        for code in codes
    ]


async def _active_registration(db: AsyncSession, exam_id: str, student_id: str) -> Optional[ExamRegistration]:
    result = await db.execute(
        select(ExamRegistration).where(
            ExamRegistration.exam_id == exam_id,
            ExamRegistration.student_id == student_id,
            ExamRegistration.status == RegistrationStatus.registered.value,
        )
    )
    return result.scalar_one_or_none()


# --- Exams ---
async def create_exam(db: AsyncSession, payload: ExamCreate) -> ExamResponse:
    fee = payload.per_subject_fee if payload.per_subject_fee is not None else settings.exam_subject_fee
    exam = Exam(
        name=payload.name.strip(),
        exam_type=payload.exam_type.strip().lower(),
        academic_year=payload.academic_year.strip(),
        semester=payload.semester,
        registration_start=as_utc(payload.registration_start),
        registration_end=as_utc(payload.registration_end),
        start_date=as_utc(payload.start_date),
        eligible_branches=[b.strip() for b in payload.eligible_branches],
        subjects=[s.model_dump() for s in payload.subjects],
        per_subject_fee=fee,
        status=ExamStatus.upcoming.value,
    )
    db.add(exam)
    await db.commit()
    await db.refresh(exam)
    logger.info("exam_created", extra={"exam_id": exam.id, "academic_year": exam.academic_year})
    return _exam_to_response(exam)


async def get_exam(db: AsyncSession, exam_id: str) -> ExamResponse:
    exam = await db.get(Exam, exam_id)
    if not exam:
        raise ExamNotFoundError(exam_id)
    return _exam_to_response(exam)


async def update_exam_status(db: AsyncSession, exam_id: str, payload: ExamStatusUpdate) -> ExamResponse:
    exam = await db.get(Exam, exam_id)
    if not exam:
        raise ExamNotFoundError(exam_id)
    previous = exam.status
    exam.status = payload.status.value
    await db.commit()
    await db.refresh(exam)
    logger.info(
        "exam_status_updated",
        extra={"exam_id": exam_id, "from_status": previous, "to_status": exam.status},
    )
    return _exam_to_response(exam)


# --- Registration ---
async def register_student(
    db: AsyncSession,
    exam_id: str,
    student_id: str,
    subject_codes: List[str],
    clock: Optional[Clock] = None,
) -> RegistrationResponse:
    """
    Register a student for an exam.

    Checks run in a fixed order (exam, window, student, eligibility,
    existing registration, subjects) so the first failing one is reported.
    """
    clock = clock or get_clock()

    async def attempt() -> ExamRegistration:
        exam = await fetch_current(db, Exam, exam_id)
        if not exam:
            raise ExamNotFoundError(exam_id)
        _check_window(exam, clock)

        student = await fetch_current(db, Student, student_id)
        if not student:
            raise StudentNotFoundError(student_id)
        _check_eligibility(student, exam)

        if await _active_registration(db, exam_id, student_id) is not None:
            raise AlreadyRegisteredError()

        subjects = _select_subjects(exam, subject_codes)
        registration = ExamRegistration(
            exam_id=exam_id,
            student_id=student_id,
            registered_subjects=subjects,
            total_fee=len(subjects) * Decimal(str(exam.per_subject_fee)),
            payment_status=RegistrationPaymentStatus.pending.value,
            status=RegistrationStatus.registered.value,
            version=1,
            registered_at=clock.now(),
        )
        await insert_once(db, registration, (exam_id, student_id))
        await db.commit()
        return registration

    registration = await run_optimistic(db, "register_student", attempt)
    logger.info(
        "exam_registered",
        extra={
            "registration_id": registration.id,
            "exam_id": exam_id,
            "student_id": student_id,
            "subject_count": len(registration.registered_subjects),
            "total_fee": registration.total_fee,
        },
    )
    return _registration_to_response(registration)


async def cancel_registration(
    db: AsyncSession,
    registration_id: str,
    clock: Optional[Clock] = None,
) -> RegistrationResponse:
    """registered -> cancelled. Cancelling twice fails with InvalidState."""
    clock = clock or get_clock()

    async def attempt() -> None:
        registration = await fetch_current(db, ExamRegistration, registration_id)
        if not registration:
            raise RegistrationNotFoundError()
        if registration.status != RegistrationStatus.registered.value:
            raise InvalidStateError(registration.status)
        await compare_and_swap(
            db, ExamRegistration, registration_id, registration.version,
            status=RegistrationStatus.cancelled.value,
            cancelled_at=clock.now(),
        )
        await db.commit()

    await run_optimistic(db, "cancel_registration", attempt)
    logger.info("exam_registration_cancelled", extra={"registration_id": registration_id})
    return _registration_to_response(await fetch_current(db, ExamRegistration, registration_id))


async def list_registered_students(db: AsyncSession, exam_id: str) -> List[RegistrationResponse]:
    exam = await db.get(Exam, exam_id)
    if not exam:
        raise ExamNotFoundError(exam_id)
    result = await db.execute(
        select(ExamRegistration)
        .where(
            ExamRegistration.exam_id == exam_id,
            ExamRegistration.status == RegistrationStatus.registered.value,
        )
        .order_by(ExamRegistration.registered_at.asc())
    )
    return [_registration_to_response(r) for r in result.scalars().all()]


async def list_student_registrations(db: AsyncSession, student_id: str) -> List[RegistrationResponse]:
    result = await db.execute(
        select(ExamRegistration)
        .where(ExamRegistration.student_id == student_id)
        .order_by(ExamRegistration.registered_at.desc())
    )
    return [_registration_to_response(r) for r in result.scalars().all()]
