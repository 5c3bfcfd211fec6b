"""
Opaque identifiers for new records.

Format: upper-case prefix + 20 hex chars of a uuid4, e.g. ``PAY3F2A...``.
Callers only rely on uniqueness.
"""

import uuid

PREFIX_ADMISSION = "ADMN"
PREFIX_FEE = "FEE"
PREFIX_PAYMENT = "PAY"
PREFIX_RECEIPT = "RCP"
PREFIX_EXAM = "EXAM"
PREFIX_REGISTRATION = "REG"
PREFIX_HOSTEL = "HST"
PREFIX_ROOM = "ROOM"
PREFIX_ALLOCATION = "ALLOC"
PREFIX_STUDENT = "STU"
PREFIX_AUDIT = "AUD"


def generate_id(prefix: str = "") -> str:
    return f"{prefix}{uuid.uuid4().hex[:20]}".upper()
