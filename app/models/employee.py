"""
Employee cache model.

The employee directory is owned by the Employee Management Service. This
table keeps a local copy, synchronized from employee lifecycle events, so
that principals can be resolved to employees without an HTTP round trip.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel
from sqlmodel import Field, SQLModel

# Statuses for which an employee may still record attendance and apply for leave
ACTIVE_EMPLOYEE_STATUSES = ("active", "on_leave")


class EmployeeCache(SQLModel, table=True):
    """Employee directory entry mirrored from employee events."""

    __tablename__ = "employee_cache"

    id: int = Field(primary_key=True, description="Employee ID from employee service")
    user_id: Optional[str] = Field(
        default=None, index=True, description="Identity provider subject"
    )
    email: str = Field(index=True, unique=True, max_length=255)
    first_name: str = Field(max_length=255)
    last_name: str = Field(max_length=255)
    full_name: str = Field(max_length=511)
    role: str = Field(default="employee", max_length=100)
    job_title: str = Field(default="", max_length=255)
    department: Optional[str] = Field(default=None, max_length=255, index=True)
    team: Optional[str] = Field(default=None, max_length=255)
    manager_id: Optional[int] = Field(default=None, index=True)
    employment_type: str = Field(default="permanent", max_length=50)
    status: str = Field(default="active", max_length=50, index=True)
    joining_date: Optional[datetime] = Field(default=None)

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    synced_at: datetime = Field(
        default_factory=datetime.utcnow, description="Last synced from an event"
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_EMPLOYEE_STATUSES


class EmployeeSummary(BaseModel):
    """Read-time employee hydration for attendance and leave responses."""

    id: int
    full_name: Optional[str] = None
    email: Optional[str] = None
    department: Optional[str] = None

    @classmethod
    def from_cache(cls, employee: EmployeeCache) -> "EmployeeSummary":
        return cls(
            id=employee.id,
            full_name=employee.full_name,
            email=employee.email,
            department=employee.department,
        )

