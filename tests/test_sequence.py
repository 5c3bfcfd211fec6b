"""Tests for application numbering: gap-free, per-year, safe under concurrent issuance."""

import asyncio

import pytest

from campus.api.v1.admissions import service as admissions_service
from campus.api.v1.admissions.schemas import AdmissionCreate
from campus.core.models import Admission
from campus.core.sequence import (
    SequenceScope,
    current_value,
    format_sequence_number,
    parse_sequence_number,
)


def test_format_pads_sequence() -> None:
    scope = SequenceScope(prefix="ADM", year=2024)
    assert format_sequence_number(scope, 42) == "ADM2024000042"
    assert format_sequence_number(scope, 7, width=3) == "ADM2024007"


def test_parse_only_accepts_numbers_from_scope() -> None:
    scope = SequenceScope(prefix="ADM", year=2024)
    assert parse_sequence_number("ADM2024000042", scope) == 42
    assert parse_sequence_number("ADM2023000042", scope) is None
    assert parse_sequence_number("ADM2024ABC", scope) is None
    assert parse_sequence_number("", scope) is None


@pytest.mark.asyncio
async def test_sequential_numbers_start_at_one(db_session) -> None:
    numbers = [
        await admissions_service.next_application_number(db_session, year=2024)
        for _ in range(3)
    ]
    assert numbers == ["ADM2024000001", "ADM2024000002", "ADM2024000003"]


@pytest.mark.asyncio
async def test_scopes_are_independent(db_session) -> None:
    assert await admissions_service.next_application_number(db_session, year=2024) == "ADM2024000001"
    assert await admissions_service.next_application_number(db_session, year=2025) == "ADM2025000001"
    assert await admissions_service.next_application_number(db_session, year=2024) == "ADM2024000002"


@pytest.mark.asyncio
async def test_concurrent_issuance_yields_exact_range(session_factory) -> None:
    """Ten callers on separate sessions get exactly 1..10, no duplicates."""

    async def issue() -> str:
        async with session_factory() as session:
            return await admissions_service.next_application_number(session, year=2024)

    numbers = await asyncio.gather(*(issue() for _ in range(10)))

    scope = admissions_service.application_scope(2024)
    values = sorted(parse_sequence_number(n, scope) for n in numbers)
    assert values == list(range(1, 11))

    async with session_factory() as session:
        assert await current_value(session, scope) == 10


@pytest.mark.asyncio
async def test_concurrent_submissions_get_distinct_numbers(session_factory, clock) -> None:
    async def submit(i: int):
        async with session_factory() as session:
            payload = AdmissionCreate(applicant_name=f"Applicant {i}", email=f"applicant{i}@example.com")
            return await admissions_service.submit_application(session, payload, clock=clock)

    results = await asyncio.gather(*(submit(i) for i in range(6)))

    numbers = sorted(r.application_number for r in results)
    assert numbers == [f"ADM2024{n:06d}" for n in range(1, 7)]
    assert all(r.status == "submitted" for r in results)


@pytest.mark.asyncio
async def test_counter_seeded_from_existing_admissions(db_session, clock) -> None:
    """Numbers already in the table (e.g. imported data) are never reissued."""
    db_session.add(
        Admission(
            application_number="ADM2024000041",
            applicant_name="Imported",
            academic_year=2024,
            status="approved",
            submitted_at=clock.now(),
            updated_at=clock.now(),
        )
    )
    await db_session.commit()

    assert await admissions_service.next_application_number(db_session, year=2024) == "ADM2024000042"
    assert await admissions_service.next_application_number(db_session, year=2024) == "ADM2024000043"
