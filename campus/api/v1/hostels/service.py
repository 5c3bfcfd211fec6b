"""
Hostels service: rooms, allocations and the per-room occupancy counter.

Room.current_occupancy is moved by a version-guarded update committed in the
same transaction as the allocation insert / vacate it accounts for, so it
always equals the number of active allocations for the room and never
exceeds capacity.
"""

from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from campus.core.clock import Clock, as_utc, get_clock
from campus.core.coordination import compare_and_swap, fetch_current, insert_once, run_optimistic
from campus.core.enums import AllocationStatus
from campus.core.exceptions import (
    AllocationNotActiveError,
    AllocationNotFoundError,
    CapacityBelowOccupancyError,
    DuplicateHostelError,
    DuplicateRoomError,
    HostelNotFoundError,
    RoomFullError,
    RoomInactiveError,
    RoomNotFoundError,
    StudentAlreadyAllocatedError,
    StudentNotFoundError,
)
from campus.core.logging import get_logger
from campus.core.models import Hostel, HostelAllocation, Room, Student

from .schemas import (
    AllocationResponse,
    AllocationTerms,
    HostelCreate,
    HostelResponse,
    RoomCreate,
    RoomResponse,
    RoomUpdate,
)

logger = get_logger("services.hostels")


def _room_to_response(room: Room) -> RoomResponse:
    return RoomResponse(
        id=room.id,
        hostel_id=room.hostel_id,
        room_number=room.room_number,
        floor=room.floor,
        room_type=room.room_type,
        capacity=room.capacity,
        current_occupancy=room.current_occupancy,
        available_beds=room.capacity - room.current_occupancy,
        rent=room.rent,
        is_active=room.is_active,
    )


def _allocation_to_response(a: HostelAllocation) -> AllocationResponse:
    return AllocationResponse(
        id=a.id,
        student_id=a.student_id,
        room_id=a.room_id,
        hostel_id=a.hostel_id,
        status=a.status,
        monthly_rent=a.monthly_rent,
        security_deposit=a.security_deposit if a.security_deposit is not None else Decimal("0"),
        allocated_at=as_utc(a.allocated_at),
        vacated_at=as_utc(a.vacated_at),
    )


async def _active_allocation(db: AsyncSession, student_id: str) -> Optional[HostelAllocation]:
    result = await db.execute(
        select(HostelAllocation)
        .where(
            HostelAllocation.student_id == student_id,
            HostelAllocation.status == AllocationStatus.active.value,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# --- Hostels and rooms ---
async def create_hostel(db: AsyncSession, payload: HostelCreate) -> HostelResponse:
    name = payload.name.strip()

    async def attempt() -> Hostel:
        existing = await db.execute(select(Hostel.id).where(Hostel.name == name))
        if existing.first() is not None:
            raise DuplicateHostelError(name)
        hostel = Hostel(name=name, hostel_type=payload.hostel_type.value, total_rooms=payload.total_rooms)
        await insert_once(db, hostel, name)
        await db.commit()
        await db.refresh(hostel)
        return hostel

    hostel = await run_optimistic(db, "create_hostel", attempt)
    logger.info("hostel_created", extra={"hostel_id": hostel.id, "hostel_name": name})
    return HostelResponse.model_validate(hostel)


async def create_room(db: AsyncSession, hostel_id: str, payload: RoomCreate) -> RoomResponse:
    room_number = payload.room_number.strip()

    async def attempt() -> Room:
        hostel = await db.get(Hostel, hostel_id)
        if not hostel:
            raise HostelNotFoundError()
        existing = await db.execute(
            select(Room.id).where(Room.hostel_id == hostel_id, Room.room_number == room_number)
        )
        if existing.first() is not None:
            raise DuplicateRoomError(room_number)
        room = Room(
            hostel_id=hostel_id,
            room_number=room_number,
            floor=payload.floor,
            room_type=payload.room_type,
            capacity=payload.capacity,
            current_occupancy=0,
            rent=payload.rent,
            is_active=payload.is_active,
            version=1,
        )
        await insert_once(db, room, (hostel_id, room_number))
        await db.commit()
        return room

    room = await run_optimistic(db, "create_room", attempt)
    logger.info("room_created", extra={"room_id": room.id, "hostel_id": hostel_id, "capacity": room.capacity})
    return _room_to_response(room)


async def list_available_rooms(db: AsyncSession, hostel_id: str) -> List[RoomResponse]:
    """Active rooms in the hostel with at least one free bed."""
    hostel = await db.get(Hostel, hostel_id)
    if not hostel:
        raise HostelNotFoundError()
    result = await db.execute(
        select(Room)
        .where(
            Room.hostel_id == hostel_id,
            Room.is_active.is_(True),
            Room.current_occupancy < Room.capacity,
        )
        .order_by(Room.room_number.asc())
        .execution_options(populate_existing=True)
    )
    return [_room_to_response(r) for r in result.scalars().all()]


async def get_room(db: AsyncSession, room_id: str) -> RoomResponse:
    room = await fetch_current(db, Room, room_id)
    if not room:
        raise RoomNotFoundError(room_id)
    return _room_to_response(room)


async def update_room(db: AsyncSession, room_id: str, payload: RoomUpdate) -> RoomResponse:
    """
    Change room details. Capacity cannot drop below current occupancy; the
    write is version-guarded so it cannot slip past a concurrent allocation.
    """
    changes = payload.model_dump(exclude_unset=True)
    # capacity and is_active are required columns; null means "leave as is"
    for field in ("capacity", "is_active"):
        if changes.get(field, 0) is None:
            del changes[field]

    async def attempt() -> None:
        room = await fetch_current(db, Room, room_id)
        if not room:
            raise RoomNotFoundError(room_id)
        capacity = changes.get("capacity")
        if capacity is not None and capacity < room.current_occupancy:
            raise CapacityBelowOccupancyError(capacity, room.current_occupancy)
        if changes:
            await compare_and_swap(db, Room, room_id, room.version, **changes)
        await db.commit()

    await run_optimistic(db, "update_room", attempt)
    logger.info("room_updated", extra={"room_id": room_id, "fields": sorted(changes)})
    return await get_room(db, room_id)


# --- Allocations ---
async def allocate_room(
    db: AsyncSession,
    student_id: str,
    room_id: str,
    terms: Optional[AllocationTerms] = None,
    clock: Optional[Clock] = None,
) -> AllocationResponse:
    """
    Give the student a bed in the room.

    The occupancy increment is a compare-and-swap on the room version and the
    allocation insert is guarded by the one-active-allocation-per-student
    index; both commit together or not at all.
    """
    clock = clock or get_clock()
    terms = terms or AllocationTerms()

    async def attempt() -> HostelAllocation:
        student = await fetch_current(db, Student, student_id)
        if not student:
            raise StudentNotFoundError(student_id)
        room = await fetch_current(db, Room, room_id)
        if not room:
            raise RoomNotFoundError(room_id)
        if not room.is_active:
            raise RoomInactiveError()
        if room.current_occupancy >= room.capacity:
            raise RoomFullError(room.capacity)
        if await _active_allocation(db, student_id) is not None:
            raise StudentAlreadyAllocatedError()

        await compare_and_swap(
            db, Room, room_id, room.version,
            current_occupancy=room.current_occupancy + 1,
        )
        allocation = HostelAllocation(
            student_id=student_id,
            room_id=room_id,
            hostel_id=room.hostel_id,
            status=AllocationStatus.active.value,
            monthly_rent=terms.monthly_rent if terms.monthly_rent is not None else room.rent,
            security_deposit=terms.security_deposit,
            version=1,
            allocated_at=clock.now(),
        )
        await insert_once(db, allocation, student_id)
        await db.commit()
        return allocation

    allocation = await run_optimistic(db, "allocate_room", attempt)
    logger.info(
        "room_allocated",
        extra={"allocation_id": allocation.id, "student_id": student_id, "room_id": room_id},
    )
    return _allocation_to_response(allocation)


async def vacate_room(
    db: AsyncSession,
    allocation_id: str,
    clock: Optional[Clock] = None,
) -> AllocationResponse:
    clock = clock or get_clock()

    async def attempt() -> None:
        allocation = await fetch_current(db, HostelAllocation, allocation_id)
        if not allocation:
            raise AllocationNotFoundError()
        if allocation.status != AllocationStatus.active.value:
            raise AllocationNotActiveError()
        room = await fetch_current(db, Room, allocation.room_id)
        if not room:
            raise RoomNotFoundError(allocation.room_id)

        await compare_and_swap(
            db, HostelAllocation, allocation_id, allocation.version,
            status=AllocationStatus.vacated.value,
            vacated_at=clock.now(),
        )
        await compare_and_swap(
            db, Room, room.id, room.version,
            current_occupancy=max(0, room.current_occupancy - 1),
        )
        await db.commit()

    await run_optimistic(db, "vacate_room", attempt)
    allocation = await fetch_current(db, HostelAllocation, allocation_id)
    logger.info(
        "room_vacated",
        extra={"allocation_id": allocation_id, "student_id": allocation.student_id, "room_id": allocation.room_id},
    )
    return _allocation_to_response(allocation)


async def get_student_allocation(db: AsyncSession, student_id: str) -> Optional[AllocationResponse]:
    """The student's active allocation, or None."""
    allocation = await _active_allocation(db, student_id)
    return _allocation_to_response(allocation) if allocation else None


async def reconcile_room_occupancy(db: AsyncSession, room_id: str) -> RoomResponse:
    """Recompute the cached occupancy from active allocations."""

    async def attempt() -> int:
        room = await fetch_current(db, Room, room_id)
        if not room:
            raise RoomNotFoundError(room_id)
        active = (
            await db.execute(
                select(func.count())
                .select_from(HostelAllocation)
                .where(
                    HostelAllocation.room_id == room_id,
                    HostelAllocation.status == AllocationStatus.active.value,
                )
            )
        ).scalar_one()
        if active != room.current_occupancy:
            logger.warning(
                "room_occupancy_drift",
                extra={"room_id": room_id, "cached": room.current_occupancy, "actual": active},
            )
            await compare_and_swap(db, Room, room_id, room.version, current_occupancy=active)
        await db.commit()
        return active

    await run_optimistic(db, "reconcile_room_occupancy", attempt)
    return await get_room(db, room_id)
