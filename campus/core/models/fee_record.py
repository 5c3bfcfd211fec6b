"""
Fee record per (student, academic year, semester) and its append-only payment ledger.

total_paid / balance / status are derived from the ledger and only move
together with a payment insert, under a version-guarded update.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from campus.core.enums import FeeStatus
from campus.core.ids import PREFIX_FEE, PREFIX_PAYMENT, generate_id
from campus.db.session import Base


class FeeRecord(Base):
    __tablename__ = "fee_records"
    __table_args__ = (
        UniqueConstraint("student_id", "academic_year", "semester", name="uq_fee_record_student_term"),
        CheckConstraint("balance >= 0", name="chk_fee_record_balance_non_negative"),
        CheckConstraint("total_paid >= 0", name="chk_fee_record_total_paid_non_negative"),
        CheckConstraint(
            "status IN ('pending','partial','completed')",
            name="chk_fee_record_status",
        ),
    )

    id = Column(String(40), primary_key=True, default=lambda: generate_id(PREFIX_FEE))
    student_id = Column(String(40), ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    academic_year = Column(String(20), nullable=False)
    semester = Column(Integer, nullable=False)
    # {"tuition": "50000.00", "lab": "5000.00", ...}; amounts kept as strings for exact decimals
    components = Column(JSON, nullable=False, default=dict)
    total = Column(Numeric(12, 2), nullable=False)
    total_paid = Column(Numeric(12, 2), nullable=False, default=0)
    balance = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default=FeeStatus.pending.value)
    due_date = Column(DateTime(timezone=True), nullable=False)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    student = relationship("Student")


class FeePayment(Base):
    """Immutable once written. ``sequence`` is the 1-based position in the fee's ledger."""

    __tablename__ = "fee_payments"
    __table_args__ = (
        UniqueConstraint("fee_id", "sequence", name="uq_fee_payment_sequence"),
        CheckConstraint("amount > 0", name="chk_fee_payment_amount_positive"),
    )

    id = Column(String(40), primary_key=True, default=lambda: generate_id(PREFIX_PAYMENT))
    fee_id = Column(String(40), ForeignKey("fee_records.id", ondelete="RESTRICT"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_mode = Column(String(30), nullable=False)  # CASH, CARD, UPI, BANK, ...
    external_ref = Column(String(100), nullable=True)
    receipt_number = Column(String(40), nullable=False, unique=True)
    paid_at = Column(DateTime(timezone=True), nullable=False)

    fee = relationship("FeeRecord", backref="payments")
