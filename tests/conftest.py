import os
import uuid

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./campus-dev.db")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("WRITE_RETRY_BACKOFF_MS", "2")

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from campus.core.clock import FixedClock, get_clock
from campus.core.models import Exam, FeeRecord, Hostel, Room, Student
from campus.db.session import build_engine, build_session_factory, get_db, init_models
from campus.main import app

NOW = datetime(2024, 10, 10, 9, 0, tzinfo=timezone.utc)


@pytest.fixture()
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite per test, so separate sessions really contend."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'campus-test.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return build_session_factory(engine)


@pytest.fixture()
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture()
async def client(session_factory: async_sessionmaker, clock: FixedClock) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app; one session per request."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# --- Seed helpers ---
# Each seeds through its own session: a failed service call rolls back (and
# expires) everything in db_session, which must not include seeded rows.


@pytest.fixture()
def make_student(session_factory: async_sessionmaker):
    async def _make(name: str = "Asha Rao", branch: str = "CS", **fields) -> Student:
        student = Student(name=name, branch=branch, course=fields.pop("course", "B.Tech"), **fields)
        async with session_factory() as session:
            session.add(student)
            await session.commit()
        return student

    return _make


@pytest.fixture()
def make_fee(session_factory: async_sessionmaker, make_student):
    async def _make(total: str = "1000.00", student: Student = None, semester: int = 1) -> FeeRecord:
        student = student or await make_student()
        amount = Decimal(total)
        fee = FeeRecord(
            student_id=student.id,
            academic_year="2024-25",
            semester=semester,
            components={"tuition": str(amount)},
            total=amount,
            total_paid=Decimal("0"),
            balance=amount,
            status="pending" if amount > 0 else "completed",
            due_date=NOW + timedelta(days=90),
            version=1,
        )
        async with session_factory() as session:
            session.add(fee)
            await session.commit()
        return fee

    return _make


@pytest.fixture()
def make_exam(session_factory: async_sessionmaker):
    async def _make(
        registration_start: datetime = datetime(2024, 10, 1, tzinfo=timezone.utc),
        registration_end: datetime = datetime(2024, 10, 25, tzinfo=timezone.utc),
        eligible_branches=("CS", "EE"),
        subjects=(("CS101", "Programming"), ("CS102", "Data Structures")),
        per_subject_fee: str = "100",
    ) -> Exam:
        exam = Exam(
            name="Semester End Examination",
            exam_type="final",
            academic_year="2024-25",
            semester=1,
            registration_start=registration_start,
            registration_end=registration_end,
            eligible_branches=list(eligible_branches),
            subjects=[{"subject_code": c, "subject_name": n} for c, n in subjects],
            per_subject_fee=Decimal(per_subject_fee),
        )
        async with session_factory() as session:
            session.add(exam)
            await session.commit()
        return exam

    return _make


@pytest.fixture()
def make_room(session_factory: async_sessionmaker):
    async def _make(capacity: int = 2, is_active: bool = True, rent: str = "4500.00", room_number: str = None) -> Room:
        hostel = Hostel(name=f"Block {uuid.uuid4().hex[:8].upper()}", hostel_type="mixed")
        async with session_factory() as session:
            session.add(hostel)
            await session.flush()
            room = Room(
                hostel_id=hostel.id,
                room_number=room_number or "101",
                floor=1,
                room_type="double",
                capacity=capacity,
                current_occupancy=0,
                rent=Decimal(rent),
                is_active=is_active,
                version=1,
            )
            session.add(room)
            await session.commit()
        return room

    return _make
