"""
Service-layer errors.

Every error carries a machine-readable ``code``, an ``ErrorKind`` and the HTTP
status the controller layer maps it to. Routers catch ``ServiceError`` and
turn it into an ``HTTPException`` using ``to_detail()``.

    ServiceError
    +-- NotFoundError            (404)
    +-- InvalidInputError        (400)
    +-- PreconditionFailedError  (400)
    +-- CapacityExceededError    (409)
    +-- ConflictError            (409)
"""

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from fastapi import status

from campus.core.enums import ErrorKind


class ServiceError(Exception):
    """Base exception for service layer errors."""

    code: str = "SERVICE_ERROR"
    kind: Optional[ErrorKind] = None

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_detail(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "kind": self.kind.value if self.kind else None,
            "message": self.message,
        }


# --- Kinds ---

class NotFoundError(ServiceError):
    code = "NOT_FOUND"
    kind = ErrorKind.NOT_FOUND

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class InvalidInputError(ServiceError):
    code = "INVALID_INPUT"
    kind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class PreconditionFailedError(ServiceError):
    code = "PRECONDITION_FAILED"
    kind = ErrorKind.PRECONDITION_FAILED

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class CapacityExceededError(ServiceError):
    code = "CAPACITY_EXCEEDED"
    kind = ErrorKind.CAPACITY_EXCEEDED

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class ConflictError(ServiceError):
    code = "CONFLICT"
    kind = ErrorKind.CONFLICT

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class WriteConflictExhausted(ConflictError):
    """Concurrent writers kept winning until the retry budget ran out."""

    code = "WRITE_CONFLICT"

    def __init__(self, operation: str, attempts: int) -> None:
        self.operation = operation
        self.attempts = attempts
        super().__init__(f"Could not complete {operation} due to concurrent updates; please retry")


# --- Students ---

class StudentNotFoundError(NotFoundError):
    code = "STUDENT_NOT_FOUND"

    def __init__(self, student_id: str) -> None:
        self.student_id = student_id
        super().__init__("Student not found")


# --- Admissions ---

class AdmissionNotFoundError(NotFoundError):
    code = "ADMISSION_NOT_FOUND"

    def __init__(self) -> None:
        super().__init__("Admission not found")


class InvalidAdmissionStatusError(InvalidInputError):
    code = "INVALID_ADMISSION_STATUS"

    def __init__(self, status_value: str) -> None:
        self.status_value = status_value
        super().__init__(f"Invalid admission status: {status_value}")


# --- Fees ---

class FeeNotFoundError(NotFoundError):
    code = "FEE_NOT_FOUND"

    def __init__(self, fee_id: str) -> None:
        self.fee_id = fee_id
        super().__init__("Fee record not found")


class FeeAlreadyExistsError(ConflictError):
    code = "FEE_ALREADY_EXISTS"

    def __init__(self) -> None:
        super().__init__("Fee structure already exists for this student, academic year, and semester")


class InvalidAmountError(InvalidInputError):
    code = "INVALID_AMOUNT"

    def __init__(self, amount: Decimal, message: Optional[str] = None) -> None:
        self.amount = amount
        super().__init__(message or "Payment amount must be greater than 0")


class InvalidFeeStructureError(InvalidInputError):
    code = "INVALID_FEE_STRUCTURE"


class InsufficientRemainingBalanceError(CapacityExceededError):
    code = "INSUFFICIENT_REMAINING_BALANCE"

    def __init__(self, amount: Decimal, balance: Decimal) -> None:
        self.amount = amount
        self.balance = balance
        super().__init__(f"Payment amount ({amount}) exceeds remaining balance ({balance})")


class StructureLockedError(PreconditionFailedError):
    code = "STRUCTURE_LOCKED"

    def __init__(self) -> None:
        super().__init__("Cannot update fee structure after payments have been made")


# --- Exams ---

class ExamNotFoundError(NotFoundError):
    code = "EXAM_NOT_FOUND"

    def __init__(self, exam_id: str) -> None:
        self.exam_id = exam_id
        super().__init__("Exam not found")


class RegistrationNotOpenError(PreconditionFailedError):
    code = "REGISTRATION_NOT_OPEN"

    NOT_YET_OPEN = "not_yet_open"
    CLOSED = "closed"

    def __init__(self, reason: str) -> None:
        self.reason = reason
        if reason == self.NOT_YET_OPEN:
            message = "Registration has not started yet"
        else:
            message = "Registration period has ended"
        super().__init__(message)


class NotEligibleError(PreconditionFailedError):
    code = "NOT_ELIGIBLE"

    def __init__(self, branch: Optional[str], eligible_branches: Iterable[str]) -> None:
        self.branch = branch
        self.eligible_branches = list(eligible_branches)
        super().__init__(
            f'Student is not eligible for this exam. Student branch: "{branch}", '
            f"Eligible branches: [{', '.join(self.eligible_branches)}]"
        )


class AlreadyRegisteredError(ConflictError):
    code = "ALREADY_REGISTERED"

    def __init__(self) -> None:
        super().__init__("Student is already registered for this exam")


class InvalidSubjectsError(InvalidInputError):
    code = "INVALID_SUBJECTS"

    def __init__(self, invalid_codes: List[str], message: Optional[str] = None) -> None:
        self.invalid_codes = invalid_codes
        super().__init__(message or f"Invalid subjects: {', '.join(invalid_codes)}")


class RegistrationNotFoundError(NotFoundError):
    code = "REGISTRATION_NOT_FOUND"

    def __init__(self) -> None:
        super().__init__("Registration not found")


class InvalidStateError(PreconditionFailedError):
    code = "INVALID_STATE"

    def __init__(self, current_status: str) -> None:
        self.current_status = current_status
        super().__init__(f"Registration cannot be cancelled (status: {current_status})")


# --- Hostels ---

class HostelNotFoundError(NotFoundError):
    code = "HOSTEL_NOT_FOUND"

    def __init__(self) -> None:
        super().__init__("Hostel not found")


class DuplicateHostelError(ConflictError):
    code = "DUPLICATE_HOSTEL"

    def __init__(self, hostel_name: str) -> None:
        self.hostel_name = hostel_name
        super().__init__("Hostel with this name already exists")


class RoomNotFoundError(NotFoundError):
    code = "ROOM_NOT_FOUND"

    def __init__(self, room_id: str) -> None:
        self.room_id = room_id
        super().__init__("Room not found")


class DuplicateRoomError(ConflictError):
    code = "DUPLICATE_ROOM"

    def __init__(self, room_number: str) -> None:
        self.room_number = room_number
        super().__init__("Room number already exists in this hostel")


class CapacityBelowOccupancyError(PreconditionFailedError):
    code = "CAPACITY_BELOW_OCCUPANCY"

    def __init__(self, capacity: int, current_occupancy: int) -> None:
        self.capacity = capacity
        self.current_occupancy = current_occupancy
        super().__init__(
            f"Room capacity ({capacity}) cannot be less than current occupancy ({current_occupancy})"
        )


class RoomInactiveError(PreconditionFailedError):
    code = "ROOM_INACTIVE"

    def __init__(self) -> None:
        super().__init__("Room is not active")


class RoomFullError(CapacityExceededError):
    code = "ROOM_FULL"

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        super().__init__("Room is at full capacity")


class StudentAlreadyAllocatedError(ConflictError):
    code = "STUDENT_ALREADY_ALLOCATED"

    def __init__(self) -> None:
        super().__init__("Student already has an active room allocation")


class AllocationNotFoundError(NotFoundError):
    code = "ALLOCATION_NOT_FOUND"

    def __init__(self) -> None:
        super().__init__("Allocation not found")


class AllocationNotActiveError(PreconditionFailedError):
    code = "ALLOCATION_NOT_ACTIVE"

    def __init__(self) -> None:
        super().__init__("Allocation is not active")
