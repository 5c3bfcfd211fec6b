"""
Gap-free, scope-partitioned sequence numbers (e.g. application numbers).

The counter row per scope is advanced with a version-guarded update, so two
concurrent callers can never be handed the same value. ``reserve_next_value``
does not commit: the caller commits the reservation together with the record
that uses the number, so a failed insert rolls the reservation back and leaves
no gap.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from campus.core.config import settings
from campus.core.coordination import compare_and_swap, fetch_current, insert_once
from campus.core.logging import get_logger
from campus.core.models import SequenceCounter

logger = get_logger("core.sequence")


@dataclass(frozen=True)
class SequenceScope:
    prefix: str
    year: int

    @property
    def key(self) -> str:
        return f"{self.prefix}{self.year}"


SeedFn = Callable[[AsyncSession, SequenceScope], Awaitable[int]]


def format_sequence_number(scope: SequenceScope, value: int, width: Optional[int] = None) -> str:
    """ADM + 2024 + 000042 -> 'ADM2024000042'."""
    return f"{scope.key}{value:0{width or settings.application_number_width}d}"


def parse_sequence_number(number: str, scope: SequenceScope) -> Optional[int]:
    """Trailing sequence of a number issued in ``scope``; None if it belongs elsewhere."""
    if not number or not number.startswith(scope.key):
        return None
    digits = number[len(scope.key):]
    if not digits.isdigit():
        return None
    return int(digits)


async def reserve_next_value(
    db: AsyncSession,
    scope: SequenceScope,
    seed: Optional[SeedFn] = None,
) -> int:
    """
    One attempt at taking the next value in ``scope``. Raises WriteConflict when
    another caller advanced the counter first; run inside ``run_optimistic``.

    ``seed`` returns the highest value already issued in the scope and is only
    consulted when the scope's counter row does not exist yet.
    """
    counter = await fetch_current(db, SequenceCounter, scope.key)
    if counter is None:
        start = await seed(db, scope) if seed is not None else 0
        value = start + 1
        await insert_once(db, SequenceCounter(id=scope.key, current_value=value, version=1), scope.key)
    else:
        value = counter.current_value + 1
        await compare_and_swap(db, SequenceCounter, scope.key, counter.version, current_value=value)

    logger.debug("sequence_reserved", extra={"scope": scope.key, "value": value})
    return value


async def current_value(db: AsyncSession, scope: SequenceScope) -> Optional[int]:
    counter = await fetch_current(db, SequenceCounter, scope.key)
    return counter.current_value if counter else None
