"""
Shared API dependencies.
Contains reusable dependency functions for FastAPI endpoints.
Centralizes database sessions, authentication, the clock, collaborators
(evidence store, employee directory, rate limiter) and the core services.
"""

from datetime import datetime
from typing import Annotated

from fastapi import Depends
from sqlmodel import Session

from app.core.attendance_service import AttendanceService
from app.core.config import settings
from app.core.database import get_session
from app.core.employee_service import EmployeeDirectory
from app.core.errors import RateLimited
from app.core.evidence import EvidenceStore, build_evidence_store
from app.core.holidays import HolidayCalendar
from app.core.leave_service import LeaveService
from app.core.logging import get_logger
from app.core.office_hours import OfficeWindow, current_time
from app.core.rate_limit import RateLimiter, get_rate_limiter
from app.core.security import TokenData, get_current_active_user, require_role

logger = get_logger(__name__)

# Database session dependency
# Use this type annotation in route handlers to get automatic session injection
SessionDep = Annotated[Session, Depends(get_session)]

# Current User dependency for security
CurrentUserDep = Annotated[TokenData, Depends(get_current_active_user)]

# Members of the HR review groups
ReviewerDep = Annotated[TokenData, Depends(require_role(*settings.REVIEWER_GROUPS))]


def get_now() -> datetime:
    """Request clock, overridden in tests."""
    return current_time()


NowDep = Annotated[datetime, Depends(get_now)]


_evidence_store: EvidenceStore | None = None


def get_evidence_store() -> EvidenceStore:
    global _evidence_store
    if _evidence_store is None:
        _evidence_store = build_evidence_store()
    return _evidence_store


EvidenceStoreDep = Annotated[EvidenceStore, Depends(get_evidence_store)]


def get_directory(session: SessionDep) -> EmployeeDirectory:
    return EmployeeDirectory(session)


DirectoryDep = Annotated[EmployeeDirectory, Depends(get_directory)]


async def get_current_employee_id(
    current_user: CurrentUserDep, directory: DirectoryDep
) -> int:
    """Employee id of the authenticated caller; NotFound if there is none."""
    return await directory.resolve(current_user)


CurrentEmployeeDep = Annotated[int, Depends(get_current_employee_id)]


def get_attendance_service(
    session: SessionDep, evidence_store: EvidenceStoreDep
) -> AttendanceService:
    return AttendanceService(
        session,
        HolidayCalendar(session),
        evidence_store,
        OfficeWindow.from_settings(),
    )


AttendanceServiceDep = Annotated[AttendanceService, Depends(get_attendance_service)]


def get_leave_service(session: SessionDep) -> LeaveService:
    return LeaveService(session)


LeaveServiceDep = Annotated[LeaveService, Depends(get_leave_service)]


def enforce_attendance_rate_limit(
    current_user: CurrentUserDep,
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> None:
    """
    Limit attendance marking attempts per principal.

    Raises:
        RateLimited: once the window is exhausted
    """
    result = limiter.hit(f"attendance:{current_user.sub}")
    if not result.allowed:
        logger.warning(
            f"Rate limit exceeded for {current_user.email or current_user.sub}, "
            f"retry after {result.retry_after}s"
        )
        raise RateLimited(
            "Too many attendance attempts, please try again later", result.retry_after
        )


AttendanceRateLimitDep = Depends(enforce_attendance_rate_limit)
