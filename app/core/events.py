"""
Event definitions for the Attendance & Leave Service.

Events are published after a state transition is committed:
- Attendance events (check-in, check-out, auto-stop, late evidence)
- Leave events (applied, updated, reviewed, cancelled)
- Audit events describing who did what
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """All event types produced by the service."""

    ATTENDANCE_CHECKIN = "attendance.checkin"
    ATTENDANCE_CHECKOUT = "attendance.checkout"
    ATTENDANCE_AUTO_STOPPED = "attendance.auto_stopped"
    ATTENDANCE_EVIDENCE_PATCHED = "attendance.evidence_patched"

    LEAVE_APPLIED = "leave.applied"
    LEAVE_UPDATED = "leave.updated"
    LEAVE_APPROVED = "leave.approved"
    LEAVE_REJECTED = "leave.rejected"
    LEAVE_CANCELLED = "leave.cancelled"

    AUDIT_ACTION = "audit.action"


class EventMetadata(BaseModel):
    """Metadata attached to every event for tracing and correlation."""

    source_service: str = "attendance-leave-service"
    correlation_id: str = Field(default_factory=lambda: str(uuid4()))
    actor_user_id: Optional[str] = None
    ip_address: Optional[str] = None


class EventEnvelope(BaseModel):
    """Standard envelope for all Kafka messages."""

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: EventType
    timestamp: str = Field(default_factory=lambda: datetime.utcnow().isoformat())
    version: str = "1.0"
    data: dict[str, Any]
    metadata: EventMetadata = Field(default_factory=EventMetadata)


class AttendanceEvent(BaseModel):
    """Data for attendance.* events."""

    attendance_id: int
    employee_id: int
    day: date
    check_in_at: Optional[datetime] = None
    check_out_at: Optional[datetime] = None
    session_status: str
    final_status: Optional[str] = None
    worked_minutes: int = 0


class LeaveEvent(BaseModel):
    """Data for leave.* events."""

    leave_id: int
    employee_id: int
    leave_type: str
    from_date: date
    to_date: date
    total_days: float
    status: str
    reviewed_by: Optional[str] = None


class AuditActionEvent(BaseModel):
    """Data for audit.action events."""

    actor_user_id: str
    action: str  # checkin, checkout, apply_leave, review_leave, cancel_leave, ...
    resource_type: str
    resource_id: int
    employee_id: int
    description: str
    ip_address: Optional[str] = None


def create_event(
    event_type: EventType,
    data: BaseModel,
    actor_user_id: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> EventEnvelope:
    """
    Create an event envelope with metadata.

    Args:
        event_type: Type of the event
        data: Event payload as a Pydantic model
        actor_user_id: Subject of the principal performing the action
        ip_address: Client address, when known

    Returns:
        EventEnvelope ready for publishing
    """
    return EventEnvelope(
        event_type=event_type,
        data=data.model_dump(mode="json"),
        metadata=EventMetadata(actor_user_id=actor_user_id, ip_address=ip_address),
    )
