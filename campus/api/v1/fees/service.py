"""
Fees service: fee records per student term and the append-only payment ledger.

Invariants kept by every write here:
    total_paid = sum(payments.amount), balance = total - total_paid >= 0,
    status completed <=> balance == 0, partial <=> 0 < total_paid < total.
Payments and the derived totals are committed together under a
version-guarded update, so concurrent payments can never overdraw a record.
"""

import calendar
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from campus.core.clock import Clock, as_utc, get_clock
from campus.core.config import settings
from campus.core.coordination import compare_and_swap, fetch_current, insert_once, run_optimistic
from campus.core.enums import FeeStatus
from campus.core.exceptions import (
    FeeAlreadyExistsError,
    FeeNotFoundError,
    InsufficientRemainingBalanceError,
    InvalidAmountError,
    InvalidFeeStructureError,
    StructureLockedError,
    StudentNotFoundError,
)
from campus.core.ids import PREFIX_RECEIPT, generate_id
from campus.core.logging import get_logger
from campus.core.models import FeeAuditLog, FeePayment, FeeRecord, Student

from .schemas import FeeRecordCreate, FeeRecordResponse, PaymentResponse

logger = get_logger("services.fees")

CENT = Decimal("0.01")


def _to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def derive_status(total_paid: Decimal, balance: Decimal) -> str:
    if balance == 0:
        return FeeStatus.completed.value
    if total_paid == 0:
        return FeeStatus.pending.value
    return FeeStatus.partial.value


def _add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _normalize_components(components: Dict[str, object]) -> Tuple[Dict[str, str], Decimal]:
    """Validate component amounts; returns (stored form, total)."""
    if not components:
        raise InvalidFeeStructureError("Fee structure must have at least one component")
    stored: Dict[str, str] = {}
    total = Decimal("0")
    for name, raw in components.items():
        key = (name or "").strip()
        if not key:
            raise InvalidFeeStructureError("Fee component names cannot be blank")
        amount = _to_decimal(raw)
        if amount < 0:
            raise InvalidFeeStructureError(f"Fee component '{key}' cannot be negative")
        if amount != amount.quantize(CENT):
            raise InvalidFeeStructureError(f"Fee component '{key}' has more than two decimal places")
        stored[key] = str(amount.quantize(CENT))
        total += amount
    return stored, total.quantize(CENT)


# --- Audit helper ---
async def _log_fee_audit(
    db: AsyncSession,
    reference_table: str,
    reference_id: str,
    action_type: str,
    old_value: Optional[dict],
    new_value: Optional[dict],
) -> None:
    log = FeeAuditLog(
        reference_table=reference_table,
        reference_id=reference_id,
        action_type=action_type,
        old_value=old_value,
        new_value=new_value,
    )
    db.add(log)


async def _load_payments(db: AsyncSession, fee_id: str, newest_first: bool = False) -> List[FeePayment]:
    order = FeePayment.sequence.desc() if newest_first else FeePayment.sequence.asc()
    result = await db.execute(
        select(FeePayment)
        .where(FeePayment.fee_id == fee_id)
        .order_by(order)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


def _payment_to_response(p: FeePayment) -> PaymentResponse:
    return PaymentResponse(
        id=p.id,
        fee_id=p.fee_id,
        sequence=p.sequence,
        amount=_to_decimal(p.amount),
        payment_mode=p.payment_mode,
        external_ref=p.external_ref,
        receipt_number=p.receipt_number,
        paid_at=as_utc(p.paid_at),
    )


def _fee_to_response(fee: FeeRecord, payments: List[FeePayment]) -> FeeRecordResponse:
    return FeeRecordResponse(
        id=fee.id,
        student_id=fee.student_id,
        academic_year=fee.academic_year,
        semester=fee.semester,
        components={k: _to_decimal(v) for k, v in (fee.components or {}).items()},
        total=_to_decimal(fee.total),
        total_paid=_to_decimal(fee.total_paid),
        balance=_to_decimal(fee.balance),
        status=fee.status,
        due_date=as_utc(fee.due_date),
        payments=[_payment_to_response(p) for p in payments],
        created_at=as_utc(fee.created_at),
        updated_at=as_utc(fee.updated_at),
    )


async def _fee_response(db: AsyncSession, fee_id: str) -> FeeRecordResponse:
    fee = await fetch_current(db, FeeRecord, fee_id)
    if not fee:
        raise FeeNotFoundError(fee_id)
    return _fee_to_response(fee, await _load_payments(db, fee_id))


# --- Fee records ---
async def create_fee_record(
    db: AsyncSession,
    payload: FeeRecordCreate,
    clock: Optional[Clock] = None,
) -> FeeRecordResponse:
    clock = clock or get_clock()
    components, total = _normalize_components(payload.components)
    academic_year = payload.academic_year.strip()

    async def attempt() -> FeeRecord:
        student = await db.get(Student, payload.student_id)
        if not student:
            raise StudentNotFoundError(payload.student_id)
        existing = await db.execute(
            select(FeeRecord.id).where(
                FeeRecord.student_id == payload.student_id,
                FeeRecord.academic_year == academic_year,
                FeeRecord.semester == payload.semester,
            )
        )
        if existing.first() is not None:
            raise FeeAlreadyExistsError()

        now = clock.now()
        fee = FeeRecord(
            student_id=payload.student_id,
            academic_year=academic_year,
            semester=payload.semester,
            components=components,
            total=total,
            total_paid=Decimal("0"),
            balance=total,
            status=derive_status(Decimal("0"), total),
            due_date=_add_months(now, settings.fee_due_months),
            version=1,
            created_at=now,
            updated_at=now,
        )
        await insert_once(db, fee, (payload.student_id, academic_year, payload.semester))
        await _log_fee_audit(
            db, "fee_records", fee.id, "CREATE", None,
            {"components": components, "total": str(total)},
        )
        await db.commit()
        return fee

    fee = await run_optimistic(db, "create_fee_record", attempt)
    logger.info("fee_record_created", extra={"fee_id": fee.id, "student_id": fee.student_id, "total": total})
    return _fee_to_response(fee, [])


async def get_fee_record(db: AsyncSession, fee_id: str) -> FeeRecordResponse:
    return await _fee_response(db, fee_id)


async def list_student_fees(db: AsyncSession, student_id: str) -> List[FeeRecordResponse]:
    result = await db.execute(
        select(FeeRecord)
        .where(FeeRecord.student_id == student_id)
        .order_by(FeeRecord.academic_year.desc(), FeeRecord.created_at.desc())
    )
    return [
        _fee_to_response(fee, await _load_payments(db, fee.id))
        for fee in result.scalars().all()
    ]


async def list_overdue_fees(db: AsyncSession, clock: Optional[Clock] = None) -> List[FeeRecordResponse]:
    clock = clock or get_clock()
    result = await db.execute(
        select(FeeRecord)
        .where(
            FeeRecord.status.in_([FeeStatus.pending.value, FeeStatus.partial.value]),
            FeeRecord.due_date < clock.now(),
        )
        .order_by(FeeRecord.due_date.asc())
    )
    return [
        _fee_to_response(fee, await _load_payments(db, fee.id))
        for fee in result.scalars().all()
    ]


# --- Ledger ---
async def record_payment(
    db: AsyncSession,
    fee_id: str,
    amount: Decimal,
    payment_mode: str,
    external_ref: Optional[str] = None,
    clock: Optional[Clock] = None,
) -> FeeRecordResponse:
    """
    Append a payment and move total_paid / balance / status with it.

    The balance check and the write are one unit: the totals are written with
    compare-and-swap on the record version, so a payment validated against a
    balance that another payment has since consumed is re-validated (and
    rejected with InsufficientRemainingBalance) instead of overdrawing.
    """
    clock = clock or get_clock()
    amount = _to_decimal(amount)
    mode = (payment_mode or "").strip().upper()
    ref = (external_ref or "").strip() or None

    async def attempt() -> FeePayment:
        fee = await fetch_current(db, FeeRecord, fee_id)
        if not fee:
            raise FeeNotFoundError(fee_id)
        if amount <= 0:
            raise InvalidAmountError(amount)
        if amount != amount.quantize(CENT):
            raise InvalidAmountError(amount, "Payment amount cannot have more than two decimal places")

        total = _to_decimal(fee.total)
        balance = _to_decimal(fee.balance)
        if amount > balance:
            raise InsufficientRemainingBalanceError(amount, balance)

        old_paid = _to_decimal(fee.total_paid)
        new_paid = old_paid + amount
        new_balance = total - new_paid
        new_status = derive_status(new_paid, new_balance)
        count = (
            await db.execute(
                select(func.count()).select_from(FeePayment).where(FeePayment.fee_id == fee_id)
            )
        ).scalar_one()
        now = clock.now()

        await compare_and_swap(
            db, FeeRecord, fee_id, fee.version,
            total_paid=new_paid,
            balance=new_balance,
            status=new_status,
            updated_at=now,
        )
        payment = FeePayment(
            fee_id=fee_id,
            sequence=count + 1,
            amount=amount,
            payment_mode=mode,
            external_ref=ref,
            receipt_number=generate_id(PREFIX_RECEIPT),
            paid_at=now,
        )
        await insert_once(db, payment, (fee_id, count + 1))
        await _log_fee_audit(
            db, "fee_records", fee_id, "PAYMENT",
            {"total_paid": str(old_paid), "balance": str(balance), "status": fee.status},
            {
                "payment_id": payment.id,
                "amount": str(amount),
                "payment_mode": mode,
                "total_paid": str(new_paid),
                "balance": str(new_balance),
                "status": new_status,
            },
        )
        await db.commit()
        return payment

    payment = await run_optimistic(db, "record_payment", attempt)
    logger.info(
        "payment_recorded",
        extra={
            "fee_id": fee_id,
            "payment_id": payment.id,
            "amount": amount,
            "receipt_number": payment.receipt_number,
        },
    )
    return await _fee_response(db, fee_id)


async def update_fee_structure(
    db: AsyncSession,
    fee_id: str,
    components: Dict[str, object],
    clock: Optional[Clock] = None,
) -> FeeRecordResponse:
    """Replace the fee components. Only allowed while nothing has been paid."""
    clock = clock or get_clock()
    stored, total = _normalize_components(components)

    async def attempt() -> None:
        fee = await fetch_current(db, FeeRecord, fee_id)
        if not fee:
            raise FeeNotFoundError(fee_id)
        if _to_decimal(fee.total_paid) > 0:
            raise StructureLockedError()

        await compare_and_swap(
            db, FeeRecord, fee_id, fee.version,
            components=stored,
            total=total,
            balance=total,
            status=derive_status(Decimal("0"), total),
            updated_at=clock.now(),
        )
        await _log_fee_audit(
            db, "fee_records", fee_id, "UPDATE_STRUCTURE",
            {"components": fee.components, "total": str(_to_decimal(fee.total))},
            {"components": stored, "total": str(total)},
        )
        await db.commit()

    await run_optimistic(db, "update_fee_structure", attempt)
    logger.info("fee_structure_updated", extra={"fee_id": fee_id, "total": total})
    return await _fee_response(db, fee_id)


async def update_due_date(
    db: AsyncSession,
    fee_id: str,
    due_date: datetime,
    clock: Optional[Clock] = None,
) -> FeeRecordResponse:
    clock = clock or get_clock()
    fee = await fetch_current(db, FeeRecord, fee_id)
    if not fee:
        raise FeeNotFoundError(fee_id)
    old_due = as_utc(fee.due_date)
    fee.due_date = as_utc(due_date)
    fee.updated_at = clock.now()
    await _log_fee_audit(
        db, "fee_records", fee_id, "UPDATE_DUE_DATE",
        {"due_date": old_due.isoformat()},
        {"due_date": fee.due_date.isoformat()},
    )
    await db.commit()
    return await _fee_response(db, fee_id)


async def get_payment_history(db: AsyncSession, fee_id: str) -> List[PaymentResponse]:
    """Payments for a fee record, newest first."""
    fee = await fetch_current(db, FeeRecord, fee_id)
    if not fee:
        raise FeeNotFoundError(fee_id)
    return [_payment_to_response(p) for p in await _load_payments(db, fee_id, newest_first=True)]
