from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus.core.clock import Clock, get_clock
from campus.core.exceptions import ServiceError
from campus.db.session import get_db

from .schemas import (
    DueDateUpdate,
    FeeRecordCreate,
    FeeRecordResponse,
    FeeStructureUpdate,
    PaymentCreate,
    PaymentResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


@router.post(
    "",
    response_model=FeeRecordResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_fee_record(
    payload: FeeRecordCreate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> FeeRecordResponse:
    """Create the fee record for one student term. Due date defaults to three months out."""
    try:
        return await service.create_fee_record(db, payload, clock=clock)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/overdue", response_model=List[FeeRecordResponse])
async def list_overdue_fees(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> List[FeeRecordResponse]:
    return await service.list_overdue_fees(db, clock=clock)


@router.get("/student/{student_id}", response_model=List[FeeRecordResponse])
async def list_student_fees(
    student_id: str,
    db: AsyncSession = Depends(get_db),
) -> List[FeeRecordResponse]:
    return await service.list_student_fees(db, student_id)


@router.get("/{fee_id}", response_model=FeeRecordResponse)
async def get_fee_record(
    fee_id: str,
    db: AsyncSession = Depends(get_db),
) -> FeeRecordResponse:
    try:
        return await service.get_fee_record(db, fee_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post(
    "/{fee_id}/payments",
    response_model=FeeRecordResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_payment(
    fee_id: str,
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> FeeRecordResponse:
    """Append a payment; responds with the updated record and its full ledger."""
    try:
        return await service.record_payment(
            db,
            fee_id,
            payload.amount,
            payload.payment_mode,
            external_ref=payload.external_ref,
            clock=clock,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/{fee_id}/payments", response_model=List[PaymentResponse])
async def get_payment_history(
    fee_id: str,
    db: AsyncSession = Depends(get_db),
) -> List[PaymentResponse]:
    try:
        return await service.get_payment_history(db, fee_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.put("/{fee_id}/structure", response_model=FeeRecordResponse)
async def update_fee_structure(
    fee_id: str,
    payload: FeeStructureUpdate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> FeeRecordResponse:
    try:
        return await service.update_fee_structure(db, fee_id, payload.components, clock=clock)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.patch("/{fee_id}/due-date", response_model=FeeRecordResponse)
async def update_due_date(
    fee_id: str,
    payload: DueDateUpdate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> FeeRecordResponse:
    try:
        return await service.update_due_date(db, fee_id, payload.due_date, clock=clock)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
