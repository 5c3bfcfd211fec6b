"""
Sequence counter: one row per numbering scope (e.g. ``ADM2024``).

The row is the only source of truth for the next number in its scope. It is
advanced with a version-guarded update, never by reading the max of issued
numbers.
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, CheckConstraint, Column, DateTime, Integer, String

from campus.db.session import Base


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"
    __table_args__ = (
        CheckConstraint("current_value >= 0", name="chk_sequence_counter_non_negative"),
    )

    # Scope key, e.g. "ADM2024"
    id = Column(String(50), primary_key=True)
    current_value = Column(BigInteger, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
