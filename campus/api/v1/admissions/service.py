"""
Admission applications and year-scoped application numbers (ADM<YEAR><SEQ>).
Application number is assigned once at submission; status is mutable by reviewers.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campus.core.clock import Clock, get_clock
from campus.core.config import settings
from campus.core.coordination import insert_once, run_optimistic
from campus.core.enums import AdmissionStatus
from campus.core.exceptions import AdmissionNotFoundError, InvalidAdmissionStatusError
from campus.core.logging import get_logger
from campus.core.models import Admission
from campus.core.sequence import (
    SequenceScope,
    format_sequence_number,
    parse_sequence_number,
    reserve_next_value,
)

from .schemas import AdmissionCreate, AdmissionResponse, AdmissionStatusUpdate

logger = get_logger("services.admissions")

REVIEW_STATUSES = (
    AdmissionStatus.under_review.value,
    AdmissionStatus.approved.value,
    AdmissionStatus.rejected.value,
    AdmissionStatus.waitlisted.value,
)


def application_scope(year: int) -> SequenceScope:
    return SequenceScope(prefix=settings.application_number_prefix, year=year)


async def _highest_issued_sequence(db: AsyncSession, scope: SequenceScope) -> int:
    """Seed for a scope's first counter: highest number already stored for that scope."""
    result = await db.execute(
        select(Admission.application_number).where(
            Admission.application_number.like(f"{scope.key}%")
        )
    )
    issued = [parse_sequence_number(n, scope) for n in result.scalars().all()]
    return max((n for n in issued if n is not None), default=0)


def _to_response(a: Admission) -> AdmissionResponse:
    return AdmissionResponse.model_validate(a)


async def next_application_number(
    db: AsyncSession,
    year: Optional[int] = None,
    clock: Optional[Clock] = None,
) -> str:
    """Reserve and commit the next application number for ``year`` (defaults to the current year)."""
    clock = clock or get_clock()
    scope = application_scope(year or clock.now().year)

    async def attempt() -> str:
        value = await reserve_next_value(db, scope, seed=_highest_issued_sequence)
        await db.commit()
        return format_sequence_number(scope, value)

    number = await run_optimistic(db, "next_application_number", attempt)
    logger.info("application_number_issued", extra={"scope": scope.key, "application_number": number})
    return number


async def submit_application(
    db: AsyncSession,
    payload: AdmissionCreate,
    clock: Optional[Clock] = None,
) -> AdmissionResponse:
    """Number reservation and admission insert commit together, so a failed insert leaves no gap."""
    clock = clock or get_clock()
    now = clock.now()
    scope = application_scope(now.year)

    async def attempt() -> Admission:
        value = await reserve_next_value(db, scope, seed=_highest_issued_sequence)
        number = format_sequence_number(scope, value)
        admission = Admission(
            application_number=number,
            applicant_name=payload.applicant_name.strip(),
            email=str(payload.email).strip() if payload.email else None,
            mobile=payload.mobile.strip() if payload.mobile else None,
            applied_course=payload.applied_course.strip() if payload.applied_course else None,
            applied_branch=payload.applied_branch.strip() if payload.applied_branch else None,
            academic_year=now.year,
            status=AdmissionStatus.submitted.value,
            submitted_at=now,
            updated_at=now,
        )
        await insert_once(db, admission, number)
        await db.commit()
        await db.refresh(admission)
        return admission

    admission = await run_optimistic(db, "submit_application", attempt)
    logger.info(
        "admission_submitted",
        extra={"admission_id": admission.id, "application_number": admission.application_number},
    )
    return _to_response(admission)


async def get_admission_by_application_number(db: AsyncSession, application_number: str) -> AdmissionResponse:
    result = await db.execute(
        select(Admission).where(Admission.application_number == application_number.strip().upper())
    )
    admission = result.scalar_one_or_none()
    if not admission:
        raise AdmissionNotFoundError()
    return _to_response(admission)


async def update_admission_status(
    db: AsyncSession,
    admission_id: str,
    payload: AdmissionStatusUpdate,
    clock: Optional[Clock] = None,
) -> AdmissionResponse:
    clock = clock or get_clock()
    new_status = payload.status.value if isinstance(payload.status, AdmissionStatus) else str(payload.status)
    if new_status not in REVIEW_STATUSES:
        raise InvalidAdmissionStatusError(new_status)

    admission = await db.get(Admission, admission_id)
    if not admission:
        raise AdmissionNotFoundError()

    old_status = admission.status
    admission.status = new_status
    admission.reviewed_by = payload.reviewed_by
    admission.review_comments = (payload.comments or "").strip() or None
    admission.updated_at = clock.now()
    await db.commit()
    await db.refresh(admission)
    logger.info(
        "admission_status_updated",
        extra={"admission_id": admission_id, "from_status": old_status, "to_status": new_status},
    )
    return _to_response(admission)
