"""
Optimistic write coordination.

Every contended record carries an integer ``version`` column. A mutation is a
read-check-write *attempt*:

    1. read the current record (``fetch_current`` bypasses the identity map),
    2. check preconditions against what was read,
    3. write with ``compare_and_swap`` (UPDATE ... WHERE version = <read>) and/or
       ``insert_once`` (INSERT guarded by a unique index),
    4. commit.

If another writer got there first, step 3 raises ``WriteConflict``;
``run_optimistic`` rolls the whole attempt back and re-runs it against fresh
state, so preconditions are re-checked. Only an exhausted retry budget reaches
the caller, as ``WriteConflictExhausted``.
"""

import asyncio
import random
from typing import Any, Awaitable, Callable, Optional, Type, TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from campus.core.config import settings
from campus.core.exceptions import WriteConflictExhausted
from campus.core.logging import get_logger

logger = get_logger("core.coordination")

T = TypeVar("T")
M = TypeVar("M")


class WriteConflict(Exception):
    """A guarded write lost a race. Internal signal; handled by run_optimistic."""

    def __init__(self, entity: str, key: Any) -> None:
        self.entity = entity
        self.key = key
        super().__init__(f"Concurrent write detected on {entity} {key}")


async def fetch_current(db: AsyncSession, model: Type[M], key: Any) -> Optional[M]:
    """Load a record by primary key straight from the database."""
    result = await db.execute(
        select(model)
        .where(model.id == key)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def compare_and_swap(
    db: AsyncSession,
    model: Type[Any],
    key: Any,
    expected_version: int,
    **values: Any,
) -> int:
    """Apply ``values`` only if the row still has ``expected_version``; returns the new version."""
    new_version = expected_version + 1
    result = await db.execute(
        update(model)
        .where(model.id == key, model.version == expected_version)
        .values(version=new_version, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise WriteConflict(model.__tablename__, key)
    return new_version


UNIQUE_VIOLATION = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    """Duplicate key, as opposed to a CHECK, foreign key or NOT NULL failure."""
    orig = exc.orig
    if getattr(orig, "sqlstate", None) == UNIQUE_VIOLATION or getattr(orig, "pgcode", None) == UNIQUE_VIOLATION:
        return True
    message = str(orig)
    return "UNIQUE constraint failed" in message or "duplicate key value" in message


async def insert_once(db: AsyncSession, record: Any, key: Any = None) -> None:
    """
    Insert a row whose uniqueness is enforced by the database; a duplicate means
    we lost a race. Any other integrity failure is a bug in the caller and is
    raised as is.
    """
    db.add(record)
    try:
        await db.flush()
    except IntegrityError as exc:
        if not is_unique_violation(exc):
            raise
        raise WriteConflict(type(record).__tablename__, key) from exc


async def run_optimistic(
    db: AsyncSession,
    operation: str,
    attempt: Callable[[], Awaitable[T]],
    *,
    max_attempts: Optional[int] = None,
) -> T:
    """
    Run ``attempt`` until it commits without a write conflict.

    ``attempt`` must commit on success. Any exception rolls the session back;
    service errors propagate unchanged, conflicts are retried.
    """
    limit = max_attempts or settings.write_max_attempts
    for attempt_no in range(1, limit + 1):
        try:
            return await attempt()
        except WriteConflict as conflict:
            await db.rollback()
            logger.debug(
                "write_conflict_retry",
                extra={
                    "operation": operation,
                    "entity": conflict.entity,
                    "key": str(conflict.key),
                    "attempt": attempt_no,
                },
            )
            await _backoff(attempt_no)
        except Exception:
            await db.rollback()
            raise

    logger.warning(
        "write_conflict_exhausted",
        extra={"operation": operation, "attempts": limit},
    )
    raise WriteConflictExhausted(operation, limit)


async def _backoff(attempt_no: int) -> None:
    ceiling_ms = settings.write_retry_backoff_ms * attempt_no
    if ceiling_ms > 0:
        await asyncio.sleep(random.uniform(0, ceiling_ms) / 1000)
