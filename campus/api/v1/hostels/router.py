from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus.core.clock import Clock, get_clock
from campus.core.exceptions import ServiceError
from campus.db.session import get_db

from .schemas import (
    AllocationCreate,
    AllocationResponse,
    AllocationTerms,
    HostelCreate,
    HostelResponse,
    RoomCreate,
    RoomResponse,
    RoomUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1/hostels", tags=["hostels"])


@router.post("", response_model=HostelResponse, status_code=status.HTTP_201_CREATED)
async def create_hostel(
    payload: HostelCreate,
    db: AsyncSession = Depends(get_db),
) -> HostelResponse:
    try:
        return await service.create_hostel(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post(
    "/allocations",
    response_model=AllocationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def allocate_room(
    payload: AllocationCreate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> AllocationResponse:
    terms = AllocationTerms(monthly_rent=payload.monthly_rent, security_deposit=payload.security_deposit)
    try:
        return await service.allocate_room(db, payload.student_id, payload.room_id, terms, clock=clock)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/allocations/{allocation_id}/vacate", response_model=AllocationResponse)
async def vacate_room(
    allocation_id: str,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> AllocationResponse:
    try:
        return await service.vacate_room(db, allocation_id, clock=clock)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/allocations/student/{student_id}", response_model=Optional[AllocationResponse])
async def get_student_allocation(
    student_id: str,
    db: AsyncSession = Depends(get_db),
) -> Optional[AllocationResponse]:
    return await service.get_student_allocation(db, student_id)


@router.get("/rooms/{room_id}", response_model=RoomResponse)
async def get_room(
    room_id: str,
    db: AsyncSession = Depends(get_db),
) -> RoomResponse:
    try:
        return await service.get_room(db, room_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.patch("/rooms/{room_id}", response_model=RoomResponse)
async def update_room(
    room_id: str,
    payload: RoomUpdate,
    db: AsyncSession = Depends(get_db),
) -> RoomResponse:
    try:
        return await service.update_room(db, room_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/rooms/{room_id}/reconcile", response_model=RoomResponse)
async def reconcile_room_occupancy(
    room_id: str,
    db: AsyncSession = Depends(get_db),
) -> RoomResponse:
    """Recompute the room's cached occupancy from its active allocations."""
    try:
        return await service.reconcile_room_occupancy(db, room_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post(
    "/{hostel_id}/rooms",
    response_model=RoomResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_room(
    hostel_id: str,
    payload: RoomCreate,
    db: AsyncSession = Depends(get_db),
) -> RoomResponse:
    try:
        return await service.create_room(db, hostel_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/{hostel_id}/rooms/available", response_model=List[RoomResponse])
async def list_available_rooms(
    hostel_id: str,
    db: AsyncSession = Depends(get_db),
) -> List[RoomResponse]:
    try:
        return await service.list_available_rooms(db, hostel_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
