"""
Database models and schemas module.
Contains all SQLModel table definitions and Pydantic schemas.
"""

from app.models.attendance import (
    AttendanceListResponse,
    AttendancePublic,
    AttendanceRecord,
    Evidence,
    FinalStatus,
    PunchLocation,
    SessionStatus,
    TodayStatus,
)
from app.models.employee import EmployeeCache, EmployeeSummary
from app.models.holiday import Holiday, HolidayApplicability
from app.models.leave import (
    LeaveAllocation,
    LeaveApplication,
    LeaveApplyRequest,
    LeaveBalanceEntry,
    LeaveDecision,
    LeavePublic,
    LeaveReviewRequest,
    LeaveStatus,
    LeaveType,
    LeaveUpdateRequest,
)

__all__ = [
    "AttendanceListResponse",
    "AttendancePublic",
    "AttendanceRecord",
    "Evidence",
    "FinalStatus",
    "PunchLocation",
    "SessionStatus",
    "TodayStatus",
    "EmployeeCache",
    "EmployeeSummary",
    "Holiday",
    "HolidayApplicability",
    "LeaveAllocation",
    "LeaveApplication",
    "LeaveApplyRequest",
    "LeaveBalanceEntry",
    "LeaveDecision",
    "LeavePublic",
    "LeaveReviewRequest",
    "LeaveStatus",
    "LeaveType",
    "LeaveUpdateRequest",
]
