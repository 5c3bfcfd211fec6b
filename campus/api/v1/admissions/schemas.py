from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from campus.core.enums import AdmissionStatus


class AdmissionCreate(BaseModel):
    """Submit an admission application. The application number is assigned by the backend."""

    applicant_name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    mobile: Optional[str] = Field(None, max_length=50)
    applied_course: Optional[str] = Field(None, max_length=100)
    applied_branch: Optional[str] = Field(None, max_length=100)


class AdmissionStatusUpdate(BaseModel):
    status: AdmissionStatus
    reviewed_by: Optional[str] = Field(None, max_length=40)
    comments: Optional[str] = Field(None, max_length=2000)


class AdmissionResponse(BaseModel):
    id: str
    application_number: str
    applicant_name: str
    email: Optional[str] = None
    mobile: Optional[str] = None
    applied_course: Optional[str] = None
    applied_branch: Optional[str] = None
    academic_year: int
    status: str
    reviewed_by: Optional[str] = None
    review_comments: Optional[str] = None
    submitted_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ApplicationNumberResponse(BaseModel):
    application_number: str
    academic_year: int
