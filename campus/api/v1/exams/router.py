from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus.core.clock import Clock, get_clock
from campus.core.exceptions import ServiceError
from campus.db.session import get_db

from .schemas import ExamCreate, ExamResponse, ExamStatusUpdate, RegistrationCreate, RegistrationResponse
from . import service

router = APIRouter(prefix="/api/v1/exams", tags=["exams"])


@router.post("", response_model=ExamResponse, status_code=status.HTTP_201_CREATED)
async def create_exam(
    payload: ExamCreate,
    db: AsyncSession = Depends(get_db),
) -> ExamResponse:
    try:
        return await service.create_exam(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/student/{student_id}/registrations", response_model=List[RegistrationResponse])
async def list_student_registrations(
    student_id: str,
    db: AsyncSession = Depends(get_db),
) -> List[RegistrationResponse]:
    return await service.list_student_registrations(db, student_id)


@router.post(
    "/registrations/{registration_id}/cancel",
    response_model=RegistrationResponse,
)
async def cancel_registration(
    registration_id: str,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> RegistrationResponse:
    try:
        return await service.cancel_registration(db, registration_id, clock=clock)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/{exam_id}", response_model=ExamResponse)
async def get_exam(
    exam_id: str,
    db: AsyncSession = Depends(get_db),
) -> ExamResponse:
    try:
        return await service.get_exam(db, exam_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.patch("/{exam_id}/status", response_model=ExamResponse)
async def update_exam_status(
    exam_id: str,
    payload: ExamStatusUpdate,
    db: AsyncSession = Depends(get_db),
) -> ExamResponse:
    try:
        return await service.update_exam_status(db, exam_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post(
    "/{exam_id}/registrations",
    response_model=RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register_student(
    exam_id: str,
    payload: RegistrationCreate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> RegistrationResponse:
    """Register a student for the exam's selected subjects; fee is per subject."""
    try:
        return await service.register_student(db, exam_id, payload.student_id, payload.subjects, clock=clock)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/{exam_id}/registrations", response_model=List[RegistrationResponse])
async def list_registered_students(
    exam_id: str,
    db: AsyncSession = Depends(get_db),
) -> List[RegistrationResponse]:
    try:
        return await service.list_registered_students(db, exam_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
