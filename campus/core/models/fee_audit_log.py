"""Fee audit log: immutable financial change tracking for audit safety."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, String

from campus.core.ids import PREFIX_AUDIT, generate_id
from campus.db.session import Base


class FeeAuditLog(Base):
    """Immutable audit trail for fee record changes; written in the same transaction as the change."""

    __tablename__ = "fee_audit_logs"

    id = Column(String(40), primary_key=True, default=lambda: generate_id(PREFIX_AUDIT))
    reference_table = Column(String(50), nullable=False)
    reference_id = Column(String(40), nullable=False, index=True)
    action_type = Column(String(30), nullable=False)  # CREATE, PAYMENT, UPDATE_STRUCTURE, UPDATE_DUE_DATE
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
