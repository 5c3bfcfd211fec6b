from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from campus.core.enums import ExamStatus, RegistrationPaymentStatus, RegistrationStatus


class ExamSubject(BaseModel):
    subject_code: str = Field(..., min_length=1, max_length=20)
    subject_name: str = Field(..., min_length=1, max_length=255)


class ExamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    exam_type: str = Field(..., min_length=1, max_length=50, description="midterm, final, supplementary")
    academic_year: str = Field(..., min_length=1, max_length=20)
    semester: int = Field(..., ge=1, le=12)
    registration_start: datetime
    registration_end: datetime
    start_date: Optional[datetime] = None
    eligible_branches: List[str] = Field(..., min_length=1)
    subjects: List[ExamSubject] = Field(..., min_length=1)
    per_subject_fee: Optional[Decimal] = Field(None, ge=0)

    @model_validator(mode="after")
    def check_window(self):
        if self.registration_start > self.registration_end:
            raise ValueError("registration_start must be on or before registration_end")
        return self


class ExamStatusUpdate(BaseModel):
    status: ExamStatus


class ExamResponse(BaseModel):
    id: str
    name: str
    exam_type: str
    academic_year: str
    semester: int
    registration_start: datetime
    registration_end: datetime
    start_date: Optional[datetime] = None
    eligible_branches: List[str]
    subjects: List[ExamSubject]
    per_subject_fee: Decimal
    status: ExamStatus
    created_at: datetime

    class Config:
        from_attributes = True


class RegistrationCreate(BaseModel):
    student_id: str = Field(..., min_length=1, max_length=40)
    subjects: List[str] = Field(..., description="Subject codes to register for")


class RegisteredSubject(BaseModel):
    subject_code: str
    subject_name: str
    registration_fee: Decimal


class RegistrationResponse(BaseModel):
    id: str
    exam_id: str
    student_id: str
    registered_subjects: List[RegisteredSubject]
    total_fee: Decimal
    payment_status: RegistrationPaymentStatus
    status: RegistrationStatus
    registered_at: datetime
    cancelled_at: Optional[datetime] = None

    class Config:
        from_attributes = True
