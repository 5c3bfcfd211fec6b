"""
Hostels, rooms and allocations.

Room.current_occupancy is a cached count of active allocations for the room.
It only changes through version-guarded updates committed together with the
allocation row they account for.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship

from campus.core.enums import AllocationStatus
from campus.core.ids import PREFIX_ALLOCATION, PREFIX_HOSTEL, PREFIX_ROOM, generate_id
from campus.db.session import Base


class Hostel(Base):
    __tablename__ = "hostels"

    id = Column(String(40), primary_key=True, default=lambda: generate_id(PREFIX_HOSTEL))
    name = Column(String(255), nullable=False, unique=True)
    hostel_type = Column(String(20), nullable=False)  # boys, girls, mixed
    total_rooms = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)


class Room(Base):
    __tablename__ = "hostel_rooms"
    __table_args__ = (
        UniqueConstraint("hostel_id", "room_number", name="uq_hostel_room_number"),
        CheckConstraint("capacity > 0", name="chk_room_capacity_positive"),
        CheckConstraint(
            "current_occupancy >= 0 AND current_occupancy <= capacity",
            name="chk_room_occupancy_within_capacity",
        ),
    )

    id = Column(String(40), primary_key=True, default=lambda: generate_id(PREFIX_ROOM))
    hostel_id = Column(String(40), ForeignKey("hostels.id", ondelete="RESTRICT"), nullable=False, index=True)
    room_number = Column(String(20), nullable=False)
    floor = Column(Integer, nullable=True)
    room_type = Column(String(30), nullable=True)  # single, double, dormitory
    capacity = Column(Integer, nullable=False)
    current_occupancy = Column(Integer, nullable=False, default=0)
    rent = Column(Numeric(12, 2), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    version = Column(Integer, nullable=False, default=1)

    hostel = relationship("Hostel")


_ACTIVE_ALLOCATION = text("status = 'active'")


class HostelAllocation(Base):
    __tablename__ = "hostel_allocations"
    __table_args__ = (
        Index(
            "uq_hostel_allocation_active_student",
            "student_id",
            unique=True,
            sqlite_where=_ACTIVE_ALLOCATION,
            postgresql_where=_ACTIVE_ALLOCATION,
        ),
        CheckConstraint("status IN ('active','vacated')", name="chk_hostel_allocation_status"),
    )

    id = Column(String(40), primary_key=True, default=lambda: generate_id(PREFIX_ALLOCATION))
    student_id = Column(String(40), ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    room_id = Column(String(40), ForeignKey("hostel_rooms.id", ondelete="RESTRICT"), nullable=False, index=True)
    hostel_id = Column(String(40), ForeignKey("hostels.id", ondelete="RESTRICT"), nullable=False)
    status = Column(String(20), nullable=False, default=AllocationStatus.active.value)
    monthly_rent = Column(Numeric(12, 2), nullable=True)
    security_deposit = Column(Numeric(12, 2), nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)
    allocated_at = Column(DateTime(timezone=True), nullable=False)
    vacated_at = Column(DateTime(timezone=True), nullable=True)

    room = relationship("Room")
    student = relationship("Student")
