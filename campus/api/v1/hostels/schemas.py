from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from campus.core.enums import AllocationStatus, HostelType


class HostelCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    hostel_type: HostelType
    total_rooms: Optional[int] = Field(None, ge=0)


class HostelResponse(BaseModel):
    id: str
    name: str
    hostel_type: HostelType
    total_rooms: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class RoomCreate(BaseModel):
    room_number: str = Field(..., min_length=1, max_length=20)
    floor: Optional[int] = None
    room_type: Optional[str] = Field(None, max_length=30, description="single, double, dormitory")
    capacity: int = Field(..., gt=0)
    rent: Optional[Decimal] = Field(None, ge=0)
    is_active: bool = True


class RoomUpdate(BaseModel):
    """Occupancy is never set directly; it only moves with allocations."""

    floor: Optional[int] = None
    room_type: Optional[str] = Field(None, max_length=30)
    capacity: Optional[int] = Field(None, gt=0)
    rent: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None


class RoomResponse(BaseModel):
    id: str
    hostel_id: str
    room_number: str
    floor: Optional[int] = None
    room_type: Optional[str] = None
    capacity: int
    current_occupancy: int
    available_beds: int
    rent: Optional[Decimal] = None
    is_active: bool


class AllocationTerms(BaseModel):
    """Optional terms; monthly rent falls back to the room's rent."""

    monthly_rent: Optional[Decimal] = Field(None, ge=0)
    security_deposit: Decimal = Field(Decimal("0"), ge=0)


class AllocationCreate(AllocationTerms):
    student_id: str = Field(..., min_length=1, max_length=40)
    room_id: str = Field(..., min_length=1, max_length=40)


class AllocationResponse(BaseModel):
    id: str
    student_id: str
    room_id: str
    hostel_id: str
    status: AllocationStatus
    monthly_rent: Optional[Decimal] = None
    security_deposit: Decimal
    allocated_at: datetime
    vacated_at: Optional[datetime] = None
