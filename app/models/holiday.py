"""
Holiday calendar table.

Holidays are maintained by HR administration; this service only reads them
to decide whether a date is a non-working day for a given employee.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class HolidayApplicability(str, Enum):
    ALL = "All"
    DEPARTMENT = "Department"
    SPECIFIC = "Specific"


class Holiday(SQLModel, table=True):
    """ORM model for the holidays table."""

    __tablename__ = "holidays"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=100)
    holiday_date: date = Field(index=True)
    holiday_type: str = Field(default="National", max_length=20)
    applicable_to: str = Field(default=HolidayApplicability.ALL.value, max_length=20)
    # Department names and employee ids the holiday is restricted to
    target_departments: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    target_employees: list[int] = Field(default_factory=list, sa_column=Column(JSON))
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
