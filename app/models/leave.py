"""
Leave application models and schemas.

A ``LeaveApplication`` is created Pending by its owner, reviewed once
(Approved/Rejected), and can be Cancelled by its owner before it starts.
Balances are never stored; they are derived from Approved applications and
``LeaveAllocation`` rows (or the configured defaults).
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, model_validator
from pydantic import Field as PydanticField
from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from app.models.employee import EmployeeSummary


class LeaveType(str, Enum):
    CASUAL = "Casual"
    SICK = "Sick"
    EARNED = "Earned"
    UNPAID = "Unpaid"
    MATERNITY = "Maternity"
    PATERNITY = "Paternity"
    BEREAVEMENT = "Bereavement"
    EMERGENCY = "Emergency"


class LeaveStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"


class HalfDaySession(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"


# Statuses that block overlapping applications
ACTIVE_LEAVE_STATUSES = (LeaveStatus.PENDING.value, LeaveStatus.APPROVED.value)


# Database Models


class LeaveApplication(SQLModel, table=True):
    """ORM model for the leave_applications table."""

    __tablename__ = "leave_applications"

    id: Optional[int] = Field(default=None, primary_key=True)
    employee_id: int = Field(index=True, nullable=False)

    leave_type: str = Field(index=True, max_length=20)
    from_date: date = Field(index=True)
    to_date: date = Field(index=True)
    total_days: float = Field(ge=0.5)
    reason: str = Field(max_length=500)

    status: str = Field(default=LeaveStatus.PENDING.value, index=True, max_length=20)

    is_half_day: bool = Field(default=False)
    half_day_session: Optional[str] = Field(default=None, max_length=20)

    # Review
    reviewed_by: Optional[str] = Field(default=None, max_length=255)
    reviewed_at: Optional[datetime] = Field(default=None)
    decision_note: Optional[str] = Field(default=None, max_length=300)
    rejection_reason: Optional[str] = Field(default=None, max_length=200)

    # Handover and emergency contact
    handover_to: Optional[int] = Field(default=None)
    handover_notes: Optional[str] = Field(default=None, max_length=500)
    emergency_contact_name: Optional[str] = Field(default=None, max_length=255)
    emergency_contact_phone: Optional[str] = Field(default=None, max_length=50)

    # Timestamps
    applied_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)


class LeaveAllocation(SQLModel, table=True):
    """
    Allocated days per employee and leave type.

    Maintained by HR administration; the ledger only reads it.
    """

    __tablename__ = "leave_allocations"
    __table_args__ = (
        UniqueConstraint("employee_id", "leave_type", name="uq_allocation_employee_type"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    employee_id: int = Field(index=True)
    leave_type: str = Field(max_length=20)
    allocated: float = Field(default=0)


# Request Schemas


class LeaveApplyRequest(BaseModel):
    """Schema for a new leave application."""

    leave_type: LeaveType
    from_date: date
    to_date: date
    reason: str = PydanticField(min_length=3, max_length=500)
    is_half_day: bool = False
    half_day_session: Optional[HalfDaySession] = None
    handover_to: Optional[int] = PydanticField(default=None, gt=0)
    handover_notes: Optional[str] = PydanticField(default=None, max_length=500)
    emergency_contact_name: Optional[str] = PydanticField(default=None, max_length=255)
    emergency_contact_phone: Optional[str] = PydanticField(default=None, max_length=50)

    @model_validator(mode="after")
    def _check_half_day_session(self) -> "LeaveApplyRequest":
        if self.is_half_day and self.half_day_session is None:
            raise ValueError("half_day_session is required for half-day leave")
        if not self.is_half_day and self.half_day_session is not None:
            raise ValueError("half_day_session is only allowed for half-day leave")
        return self


class LeaveUpdateRequest(BaseModel):
    """Partial update of a pending application by its owner."""

    leave_type: Optional[LeaveType] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    reason: Optional[str] = PydanticField(default=None, min_length=3, max_length=500)
    is_half_day: Optional[bool] = None
    half_day_session: Optional[HalfDaySession] = None
    handover_to: Optional[int] = PydanticField(default=None, gt=0)
    handover_notes: Optional[str] = PydanticField(default=None, max_length=500)


class LeaveDecision(str, Enum):
    APPROVED = "Approved"
    REJECTED = "Rejected"


class LeaveReviewRequest(BaseModel):
    decision: LeaveDecision
    note: Optional[str] = PydanticField(default=None, max_length=300)
    rejection_reason: Optional[str] = PydanticField(default=None, max_length=200)


# Response Schemas


class LeavePublic(SQLModel):
    id: int
    employee_id: int
    leave_type: str
    from_date: date
    to_date: date
    total_days: float
    reason: str
    status: str
    is_half_day: bool
    half_day_session: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    decision_note: Optional[str] = None
    rejection_reason: Optional[str] = None
    handover_to: Optional[int] = None
    handover_notes: Optional[str] = None
    applied_at: datetime
    employee: Optional[EmployeeSummary] = None


class LeaveBalanceEntry(BaseModel):
    allocated: float
    used: float
    remaining: float


class LeaveBalanceResponse(BaseModel):
    employee_id: int
    year: int
    balances: dict[str, LeaveBalanceEntry]


class LeaveListResponse(BaseModel):
    total: int
    offset: int
    limit: int
    records: list[LeavePublic]


class LeaveCalendarResponse(BaseModel):
    year: int
    month: int
    leaves: list[LeavePublic]
