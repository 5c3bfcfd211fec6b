"""Tests for structured logging and write-conflict retries."""

import io
import json
import logging

import pytest

from sqlalchemy.exc import IntegrityError

from campus.core.coordination import WriteConflict, insert_once, run_optimistic
from campus.core.exceptions import RoomFullError, WriteConflictExhausted
from campus.core.logging import LogContext, configure_logging, get_logger, reset_logging
from campus.core.models import SequenceCounter


@pytest.fixture()
def log_stream():
    reset_logging()
    stream = io.StringIO()
    configure_logging(level=logging.DEBUG, json_output=True, stream=stream)
    yield stream
    reset_logging()


def _records(stream: io.StringIO):
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


def test_json_lines_carry_context_and_extra(log_stream) -> None:
    logger = get_logger("tests")
    with LogContext.bind(request_id="req-1"):
        logger.info("payment_recorded", extra={"fee_id": "FEE1", "amount": 12})
    logger.info("outside")

    first, second = _records(log_stream)
    assert first["message"] == "payment_recorded"
    assert first["logger"] == "campus.tests"
    assert first["request_id"] == "req-1"
    assert first["fee_id"] == "FEE1"
    assert "request_id" not in second


def test_exception_fields_are_logged(log_stream) -> None:
    logger = get_logger("tests")
    try:
        raise RoomFullError(1)
    except RoomFullError:
        logger.exception("allocation_failed")

    (record,) = _records(log_stream)
    assert record["exc_type"] == "RoomFullError"
    assert record["exc_code"] == "ROOM_FULL"
    assert record["exc_kind"] == "CapacityExceeded"


class _Session:
    """Session stand-in; run_optimistic only needs rollback."""

    def __init__(self) -> None:
        self.rollbacks = 0

    async def rollback(self) -> None:
        self.rollbacks += 1


@pytest.mark.asyncio
async def test_conflicts_are_retried_then_logged(log_stream) -> None:
    session = _Session()
    calls = []

    async def attempt() -> str:
        calls.append(1)
        if len(calls) < 3:
            raise WriteConflict("hostel_rooms", "ROOM1")
        return "done"

    assert await run_optimistic(session, "allocate_room", attempt) == "done"
    assert session.rollbacks == 2

    retries = [r for r in _records(log_stream) if r["message"] == "write_conflict_retry"]
    assert [r["attempt"] for r in retries] == [1, 2]
    assert retries[0]["operation"] == "allocate_room"


@pytest.mark.asyncio
async def test_exhausted_retries_surface_as_conflict(log_stream) -> None:
    session = _Session()

    async def attempt() -> None:
        raise WriteConflict("fee_records", "FEE1")

    with pytest.raises(WriteConflictExhausted) as exc:
        await run_optimistic(session, "record_payment", attempt, max_attempts=3)
    assert exc.value.attempts == 3
    assert exc.value.status_code == 409
    assert session.rollbacks == 3
    assert any(r["message"] == "write_conflict_exhausted" for r in _records(log_stream))


@pytest.mark.asyncio
async def test_service_errors_propagate_without_retry(log_stream) -> None:
    session = _Session()
    calls = []

    async def attempt() -> None:
        calls.append(1)
        raise RoomFullError(2)

    with pytest.raises(RoomFullError):
        await run_optimistic(session, "allocate_room", attempt)
    assert len(calls) == 1
    assert session.rollbacks == 1


@pytest.mark.asyncio
async def test_duplicate_insert_is_a_write_conflict(db_session, session_factory) -> None:
    async with session_factory() as session:
        session.add(SequenceCounter(id="ADM2030", current_value=4, version=1))
        await session.commit()

    calls = []

    async def attempt() -> None:
        calls.append(1)
        await insert_once(db_session, SequenceCounter(id="ADM2030", current_value=0, version=1), "ADM2030")
        await db_session.commit()

    with pytest.raises(WriteConflictExhausted):
        await run_optimistic(db_session, "issue_number", attempt, max_attempts=2)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_check_violation_is_not_retried(db_session) -> None:
    calls = []

    async def attempt() -> None:
        calls.append(1)
        await insert_once(db_session, SequenceCounter(id="ADM2031", current_value=-1, version=1), "ADM2031")
        await db_session.commit()

    with pytest.raises(IntegrityError):
        await run_optimistic(db_session, "issue_number", attempt, max_attempts=3)
    assert len(calls) == 1
