from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "NotFound"
    INVALID_INPUT = "InvalidInput"
    PRECONDITION_FAILED = "PreconditionFailed"
    CAPACITY_EXCEEDED = "CapacityExceeded"
    CONFLICT = "Conflict"


class AdmissionStatus(str, Enum):
    submitted = "submitted"
    under_review = "under_review"
    approved = "approved"
    rejected = "rejected"
    waitlisted = "waitlisted"


class FeeStatus(str, Enum):
    pending = "pending"
    partial = "partial"
    completed = "completed"


class ExamStatus(str, Enum):
    upcoming = "upcoming"
    registration_open = "registration_open"
    ongoing = "ongoing"
    completed = "completed"


class RegistrationStatus(str, Enum):
    registered = "registered"
    cancelled = "cancelled"


class RegistrationPaymentStatus(str, Enum):
    pending = "pending"
    paid = "paid"


class HostelType(str, Enum):
    BOYS = "boys"
    GIRLS = "girls"
    MIXED = "mixed"


class AllocationStatus(str, Enum):
    active = "active"
    vacated = "vacated"
