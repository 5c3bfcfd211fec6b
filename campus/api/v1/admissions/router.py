from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus.core.clock import Clock, get_clock
from campus.core.exceptions import ServiceError
from campus.db.session import get_db

from .schemas import (
    AdmissionCreate,
    AdmissionResponse,
    AdmissionStatusUpdate,
    ApplicationNumberResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/admissions", tags=["admissions"])


@router.post(
    "",
    response_model=AdmissionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_application(
    payload: AdmissionCreate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> AdmissionResponse:
    """Submit an application; the year-scoped application number is assigned here."""
    try:
        return await service.submit_application(db, payload, clock=clock)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post(
    "/application-numbers",
    response_model=ApplicationNumberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def issue_application_number(
    year: Optional[int] = Query(None, ge=2000, le=9999),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> ApplicationNumberResponse:
    """Reserve a number without an application (offline / paper forms)."""
    try:
        number = await service.next_application_number(db, year=year, clock=clock)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return ApplicationNumberResponse(application_number=number, academic_year=year or clock.now().year)


@router.get(
    "/track/{application_number}",
    response_model=AdmissionResponse,
)
async def track_application(
    application_number: str,
    db: AsyncSession = Depends(get_db),
) -> AdmissionResponse:
    try:
        return await service.get_admission_by_application_number(db, application_number)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.patch(
    "/{admission_id}/status",
    response_model=AdmissionResponse,
)
async def update_admission_status(
    admission_id: str,
    payload: AdmissionStatusUpdate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> AdmissionResponse:
    try:
        return await service.update_admission_status(db, admission_id, payload, clock=clock)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
