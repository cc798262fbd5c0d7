"""
Attendance database models and schemas for the Attendance & Leave Service.

One ``AttendanceRecord`` exists per employee per calendar day. It carries:
- Check-in/Check-out timestamps with photographic evidence URLs
- Location and source provenance for both punches
- Session status (idle, active, completed, auto-stopped)
- Final status, computed once the worked duration is known
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from app.models.employee import EmployeeSummary


class SessionStatus(str, Enum):
    """Lifecycle of the day's attendance session."""

    IDLE = "idle"
    ACTIVE = "active"
    COMPLETED = "completed"
    AUTO_STOPPED = "auto-stopped"


class FinalStatus(str, Enum):
    """Qualitative attendance verdict for the day."""

    PRESENT = "Present"
    ABSENT = "Absent"
    HALF_DAY = "Half Day"
    LEAVE = "Leave"
    HOLIDAY = "Holiday"
    WEEKEND = "Weekend"


# Database Model


class AttendanceRecord(SQLModel, table=True):
    """
    ORM model for the attendance_records table.

    The (employee_id, day) unique constraint is the only guard against
    concurrent duplicate check-ins.
    """

    __tablename__ = "attendance_records"
    __table_args__ = (
        UniqueConstraint("employee_id", "day", name="uq_attendance_employee_day"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    employee_id: int = Field(index=True, nullable=False)
    day: date = Field(index=True, nullable=False)

    check_in_at: Optional[datetime] = Field(default=None, nullable=True)
    check_out_at: Optional[datetime] = Field(default=None, nullable=True)

    session_status: str = Field(default=SessionStatus.IDLE.value, max_length=20)
    final_status: Optional[str] = Field(default=None, max_length=20, index=True)
    worked_minutes: int = Field(default=0, ge=0)

    # Evidence
    check_in_evidence_url: Optional[str] = Field(default=None, max_length=500)
    check_out_evidence_url: Optional[str] = Field(default=None, max_length=500)

    # Provenance
    check_in_location: Optional[str] = Field(default=None, max_length=255)
    check_out_location: Optional[str] = Field(default=None, max_length=255)
    check_in_source: Optional[str] = Field(default=None, max_length=100)
    check_out_source: Optional[str] = Field(default=None, max_length=100)

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)

    @property
    def has_checked_in(self) -> bool:
        return self.check_in_at is not None

    @property
    def has_checked_out(self) -> bool:
        return self.check_out_at is not None

    @property
    def is_open(self) -> bool:
        """Checked in but no checkout recorded yet (real or synthesized)."""
        return self.check_in_at is not None and self.check_out_at is None


# Request Schemas


class PunchLocation(BaseModel):
    """Where a check-in/check-out was made from."""

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None

    def describe(self) -> Optional[str]:
        """Flatten to the free-form provenance string stored on the record."""
        parts = []
        if self.latitude is not None and self.longitude is not None:
            parts.append(f"{self.latitude:.6f},{self.longitude:.6f}")
        if self.address:
            parts.append(self.address.strip())
        return " | ".join(parts) or None


class Evidence(BaseModel):
    """Photographic evidence payload, already read from the request."""

    content: bytes
    filename: str
    content_type: Optional[str] = None


# Response Schemas


class AttendancePublic(SQLModel):
    """Schema for attendance responses."""

    id: int
    employee_id: int
    day: date
    check_in_at: Optional[datetime] = None
    check_out_at: Optional[datetime] = None
    session_status: str
    final_status: Optional[str] = None
    worked_minutes: int = 0
    check_in_evidence_url: Optional[str] = None
    check_out_evidence_url: Optional[str] = None
    check_in_location: Optional[str] = None
    check_out_location: Optional[str] = None
    check_in_source: Optional[str] = None
    check_out_source: Optional[str] = None
    employee: Optional[EmployeeSummary] = None


class HolidayInfo(BaseModel):
    name: str
    type: str


class OfficeWindowInfo(BaseModel):
    start: str  # HH:MM
    end: str
    check_in_cutoff: str
    min_present_minutes: int


class TodayStatus(BaseModel):
    """Response for today's attendance status."""

    employee_id: int
    day: date
    attendance: Optional[AttendancePublic] = None
    is_weekend: bool
    holiday: Optional[HolidayInfo] = None
    can_mark_attendance: bool
    office_window: OfficeWindowInfo


class AttendanceListResponse(BaseModel):
    """Paginated attendance list response."""

    total: int
    offset: int
    limit: int
    records: list[AttendancePublic]
