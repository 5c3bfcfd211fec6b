"""Fees schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from campus.core.enums import FeeStatus


class FeeRecordCreate(BaseModel):
    student_id: str = Field(..., min_length=1, max_length=40)
    academic_year: str = Field(..., min_length=1, max_length=20, description="e.g. 2024-25")
    semester: int = Field(..., ge=1, le=12)
    components: Dict[str, Decimal] = Field(..., description="Component name -> amount, e.g. {'tuition': 50000}")


class FeeStructureUpdate(BaseModel):
    components: Dict[str, Decimal]


class DueDateUpdate(BaseModel):
    due_date: datetime


class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_mode: str = Field(..., min_length=1, max_length=30, description="CASH, CARD, UPI, BANK")
    external_ref: Optional[str] = Field(None, max_length=100, description="Gateway / bank transaction id")


class PaymentResponse(BaseModel):
    id: str
    fee_id: str
    sequence: int
    amount: Decimal
    payment_mode: str
    external_ref: Optional[str] = None
    receipt_number: str
    paid_at: datetime

    class Config:
        from_attributes = True


class FeeRecordResponse(BaseModel):
    id: str
    student_id: str
    academic_year: str
    semester: int
    components: Dict[str, Decimal]
    total: Decimal
    total_paid: Decimal
    balance: Decimal
    status: FeeStatus
    due_date: datetime
    payments: List[PaymentResponse] = []
    created_at: datetime
    updated_at: datetime
