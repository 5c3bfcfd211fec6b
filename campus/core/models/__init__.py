from campus.core.models.student import Student
from campus.core.models.sequence_counter import SequenceCounter
from campus.core.models.admission import Admission
from campus.core.models.fee_record import FeePayment, FeeRecord
from campus.core.models.fee_audit_log import FeeAuditLog
from campus.core.models.exam import Exam, ExamRegistration
from campus.core.models.hostel import Hostel, HostelAllocation, Room

__all__ = [
    "Student",
    "SequenceCounter",
    "Admission",
    "FeeRecord",
    "FeePayment",
    "FeeAuditLog",
    "Exam",
    "ExamRegistration",
    "Hostel",
    "Room",
    "HostelAllocation",
]
