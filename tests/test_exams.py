"""Tests for exam registration: window, eligibility, subjects and one active registration per student."""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from campus.api.v1.exams import service as exams_service
from campus.api.v1.exams.schemas import ExamCreate, ExamStatusUpdate, ExamSubject
from campus.core.enums import ErrorKind, ExamStatus
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


@pytest.mark.asyncio
async def test_registration_scenario(db_session, make_student, make_exam, clock) -> None:
    """Window Oct 1-25, CS student, eligible [CS, EE]; unknown subject rejected, one subject costs 100."""
    exam = await make_exam()
    student = await make_student(branch="CS")

    with pytest.raises(InvalidSubjectsError) as exc:
        await exams_service.register_student(db_session, exam.id, student.id, ["CS101", "CS999"], clock=clock)
    assert exc.value.kind == ErrorKind.INVALID_INPUT
    assert exc.value.invalid_codes == ["CS999"]
    assert "CS999" in exc.value.message

    registration = await exams_service.register_student(db_session, exam.id, student.id, ["CS101"], clock=clock)
    assert registration.status == "registered"
    assert registration.payment_status == "pending"
    assert registration.total_fee == Decimal("100")
    assert [s.subject_code for s in registration.registered_subjects] == ["CS101"]
    assert registration.registered_subjects[0].subject_name == "Programming"


@pytest.mark.asyncio
async def test_fee_scales_with_subject_count(db_session, make_student, make_exam, clock) -> None:
    exam = await make_exam(per_subject_fee="150")
    student = await make_student(branch="EE")

    registration = await exams_service.register_student(
        db_session, exam.id, student.id, ["CS101", "CS102"], clock=clock
    )
    assert registration.total_fee == Decimal("300")


@pytest.mark.asyncio
async def test_registration_window(db_session, make_student, make_exam, clock) -> None:
    exam = await make_exam()
    student = await make_student()

    clock.set(datetime(2024, 9, 30, 23, 59, tzinfo=timezone.utc))
    with pytest.raises(RegistrationNotOpenError) as early:
        await exams_service.register_student(db_session, exam.id, student.id, ["CS101"], clock=clock)
    assert early.value.reason == RegistrationNotOpenError.NOT_YET_OPEN
    assert early.value.kind == ErrorKind.PRECONDITION_FAILED

    clock.set(datetime(2024, 10, 25, 0, 0, 1, tzinfo=timezone.utc))
    with pytest.raises(RegistrationNotOpenError) as late:
        await exams_service.register_student(db_session, exam.id, student.id, ["CS101"], clock=clock)
    assert late.value.reason == RegistrationNotOpenError.CLOSED

    # Both bounds are inclusive.
    clock.set(datetime(2024, 10, 25, tzinfo=timezone.utc))
    registration = await exams_service.register_student(db_session, exam.id, student.id, ["CS101"], clock=clock)
    assert registration.status == "registered"


@pytest.mark.asyncio
async def test_checks_run_in_order(db_session, make_student, make_exam, clock) -> None:
    exam = await make_exam()

    with pytest.raises(ExamNotFoundError):
        await exams_service.register_student(db_session, "EXAM404", "STU404", ["CS999"], clock=clock)

    with pytest.raises(StudentNotFoundError):
        await exams_service.register_student(db_session, exam.id, "STU404", ["CS999"], clock=clock)

    me_student = await make_student(branch="ME")
    with pytest.raises(NotEligibleError) as exc:
        await exams_service.register_student(db_session, exam.id, me_student.id, ["CS999"], clock=clock)
    assert exc.value.message == (
        'Student is not eligible for this exam. Student branch: "ME", Eligible branches: [CS, EE]'
    )
    assert exc.value.branch == "ME"
    assert exc.value.eligible_branches == ["CS", "EE"]


@pytest.mark.asyncio
async def test_subject_list_validation(db_session, make_student, make_exam, clock) -> None:
    exam = await make_exam()
    student = await make_student()

    with pytest.raises(InvalidSubjectsError):
        await exams_service.register_student(db_session, exam.id, student.id, [], clock=clock)

    with pytest.raises(InvalidSubjectsError) as dup:
        await exams_service.register_student(db_session, exam.id, student.id, ["CS101", "CS101"], clock=clock)
    assert dup.value.invalid_codes == ["CS101"]


@pytest.mark.asyncio
async def test_second_registration_rejected(db_session, make_student, make_exam, clock) -> None:
    exam = await make_exam()
    student = await make_student()
    await exams_service.register_student(db_session, exam.id, student.id, ["CS101"], clock=clock)

    with pytest.raises(AlreadyRegisteredError) as exc:
        await exams_service.register_student(db_session, exam.id, student.id, ["CS102"], clock=clock)
    assert exc.value.kind == ErrorKind.CONFLICT


@pytest.mark.asyncio
async def test_concurrent_registration_only_one_wins(session_factory, make_student, make_exam, clock) -> None:
    exam = await make_exam()
    student = await make_student()

    async def register():
        async with session_factory() as session:
            return await exams_service.register_student(session, exam.id, student.id, ["CS101"], clock=clock)

    results = await asyncio.gather(register(), register(), return_exceptions=True)

    successes = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], AlreadyRegisteredError)

    async with session_factory() as session:
        registered = await exams_service.list_registered_students(session, exam.id)
    assert [r.student_id for r in registered] == [student.id]


@pytest.mark.asyncio
async def test_cancel_registration(db_session, make_student, make_exam, clock) -> None:
    exam = await make_exam()
    student = await make_student()
    registration = await exams_service.register_student(db_session, exam.id, student.id, ["CS101"], clock=clock)

    cancelled = await exams_service.cancel_registration(db_session, registration.id, clock=clock)
    assert cancelled.status == "cancelled"
    assert cancelled.cancelled_at == clock.now()

    with pytest.raises(InvalidStateError) as exc:
        await exams_service.cancel_registration(db_session, registration.id, clock=clock)
    assert exc.value.current_status == "cancelled"

    with pytest.raises(RegistrationNotFoundError):
        await exams_service.cancel_registration(db_session, "REG404", clock=clock)

    assert await exams_service.list_registered_students(db_session, exam.id) == []


@pytest.mark.asyncio
async def test_register_again_after_cancel(db_session, make_student, make_exam, clock) -> None:
    """Only 'registered' rows block; a cancelled registration does not."""
    exam = await make_exam()
    student = await make_student()
    first = await exams_service.register_student(db_session, exam.id, student.id, ["CS101"], clock=clock)
    await exams_service.cancel_registration(db_session, first.id, clock=clock)

    clock.advance(hours=1)
    second = await exams_service.register_student(db_session, exam.id, student.id, ["CS102"], clock=clock)
    assert second.id != first.id

    history = await exams_service.list_student_registrations(db_session, student.id)
    assert [r.id for r in history] == [second.id, first.id]
    assert [r.status for r in history] == ["registered", "cancelled"]


@pytest.mark.asyncio
async def test_create_exam_defaults_subject_fee(db_session) -> None:
    payload = ExamCreate(
        name="Mid Semester",
        exam_type="Midterm",
        academic_year="2024-25",
        semester=3,
        registration_start=datetime(2024, 10, 1, tzinfo=timezone.utc),
        registration_end=datetime(2024, 10, 25, tzinfo=timezone.utc),
        eligible_branches=["CS"],
        subjects=[ExamSubject(subject_code="CS301", subject_name="Operating Systems")],
    )
    exam = await exams_service.create_exam(db_session, payload)
    assert exam.per_subject_fee == Decimal("100")
    assert exam.exam_type == "midterm"
    assert exam.status == "upcoming"

    fetched = await exams_service.get_exam(db_session, exam.id)
    assert fetched.subjects[0].subject_code == "CS301"

    with pytest.raises(ExamNotFoundError):
        await exams_service.get_exam(db_session, "EXAM404")


@pytest.mark.asyncio
async def test_update_exam_status(db_session, make_exam) -> None:
    exam = await make_exam()

    opened = await exams_service.update_exam_status(
        db_session, exam.id, ExamStatusUpdate(status=ExamStatus.registration_open)
    )
    assert opened.status == "registration_open"
    assert (await exams_service.get_exam(db_session, exam.id)).status == "registration_open"

    with pytest.raises(ExamNotFoundError):
        await exams_service.update_exam_status(db_session, "EXAM404", ExamStatusUpdate(status=ExamStatus.ongoing))
