from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from app.api.dependencies import (
    CurrentEmployeeDep,
    CurrentUserDep,
    DirectoryDep,
    LeaveServiceDep,
    NowDep,
    ReviewerDep,
)
from app.core.employee_service import EmployeeDirectory
from app.core.errors import NotFound
from app.core.events import AuditActionEvent, EventType, LeaveEvent, create_event
from app.core.kafka import publish_best_effort
from app.core.leave_service import MAX_PAGE_SIZE
from app.core.logging import get_logger
from app.core.security import TokenData
from app.core.topics import KafkaTopics
from app.models.leave import (
    LeaveApplication,
    LeaveApplyRequest,
    LeaveBalanceResponse,
    LeaveCalendarResponse,
    LeaveListResponse,
    LeavePublic,
    LeaveReviewRequest,
    LeaveStatus,
    LeaveType,
    LeaveUpdateRequest,
)

logger = get_logger(__name__)

router = APIRouter(
    prefix="/leaves",
    tags=["leaves"],
    responses={404: {"description": "Leave application not found"}},
)


def _to_public(leaves: list[LeaveApplication], directory: EmployeeDirectory) -> list[LeavePublic]:
    summaries = directory.get_summaries(leave.employee_id for leave in leaves)
    return [
        LeavePublic.model_validate(leave).model_copy(
            update={"employee": summaries.get(leave.employee_id)}
        )
        for leave in leaves
    ]


async def _publish_leave(
    topic: str, event_type: EventType, leave: LeaveApplication, current_user: TokenData
) -> None:
    event = create_event(
        event_type,
        LeaveEvent(
            leave_id=leave.id,
            employee_id=leave.employee_id,
            leave_type=leave.leave_type,
            from_date=leave.from_date,
            to_date=leave.to_date,
            total_days=leave.total_days,
            status=leave.status,
            reviewed_by=leave.reviewed_by,
        ),
        actor_user_id=current_user.sub,
    )
    await publish_best_effort(topic, event, key=str(leave.employee_id))

    action = event_type.value.split(".", 1)[1]
    audit = create_event(
        EventType.AUDIT_ACTION,
        AuditActionEvent(
            actor_user_id=current_user.sub,
            action=f"leave_{action}",
            resource_type="leave",
            resource_id=leave.id,
            employee_id=leave.employee_id,
            description=f"Leave application {leave.id} {action} ({leave.from_date}..{leave.to_date})",
        ),
        actor_user_id=current_user.sub,
    )
    await publish_best_effort(KafkaTopics.AUDIT_ACTION, audit, key=str(leave.employee_id))


@router.post("", response_model=LeavePublic, status_code=201)
async def apply_leave(
    request: LeaveApplyRequest,
    service: LeaveServiceDep,
    now: NowDep,
    directory: DirectoryDep,
    current_user: CurrentUserDep,
    employee_id: CurrentEmployeeDep,
) -> LeavePublic:
    """
    Apply for leave.

    Raises:
        422 invalid range or insufficient balance, 409 overlapping application
    """
    leave = service.apply(employee_id, request, now)
    await _publish_leave(KafkaTopics.LEAVE_APPLIED, EventType.LEAVE_APPLIED, leave, current_user)
    return _to_public([leave], directory)[0]


@router.get("/balance", response_model=LeaveBalanceResponse)
async def get_my_balance(
    service: LeaveServiceDep,
    employee_id: CurrentEmployeeDep,
    now: NowDep,
    year: Optional[int] = Query(None, ge=1970, le=9999),
) -> LeaveBalanceResponse:
    """Leave balance of the caller for ``year`` (default: current year)."""
    year = year or now.year
    return LeaveBalanceResponse(
        employee_id=employee_id, year=year, balances=service.get_balance(employee_id, year)
    )


@router.get("/balance/{employee_id}", response_model=LeaveBalanceResponse)
async def get_employee_balance(
    employee_id: int,
    service: LeaveServiceDep,
    directory: DirectoryDep,
    current_user: CurrentUserDep,
    now: NowDep,
    year: Optional[int] = Query(None, ge=1970, le=9999),
) -> LeaveBalanceResponse:
    """
    Leave balance of any employee.

    **RBAC:** HR reviewers only, unless the id is the caller's own.
    """
    if current_user.is_reviewer:
        await directory.ensure_exists(employee_id)
    elif await directory.resolve(current_user) != employee_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view your own leave balance",
        )
    year = year or now.year
    return LeaveBalanceResponse(
        employee_id=employee_id, year=year, balances=service.get_balance(employee_id, year)
    )


@router.get("/calendar", response_model=LeaveCalendarResponse)
async def get_leave_calendar(
    service: LeaveServiceDep,
    directory: DirectoryDep,
    _: CurrentUserDep,
    now: NowDep,
    year: Optional[int] = Query(None, ge=1970, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    department: Optional[str] = Query(None, description="Restrict to a department"),
) -> LeaveCalendarResponse:
    """Approved leaves overlapping a month (default: the current month)."""
    year = year or now.year
    month = month or now.month
    employee_ids = directory.employee_ids_in_department(department) if department else None
    leaves = service.calendar(year, month, employee_ids)
    return LeaveCalendarResponse(year=year, month=month, leaves=_to_public(leaves, directory))


@router.get("", response_model=LeaveListResponse)
async def list_leaves(
    service: LeaveServiceDep,
    directory: DirectoryDep,
    current_user: CurrentUserDep,
    employee_id: Optional[int] = Query(None, description="Filter by employee (HR only)"),
    leave_status: Optional[LeaveStatus] = Query(None, alias="status"),
    leave_type: Optional[LeaveType] = Query(None, alias="type"),
    from_date: Optional[date] = Query(None, description="Earliest start date"),
    to_date: Optional[date] = Query(None, description="Latest start date"),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=MAX_PAGE_SIZE),
) -> LeaveListResponse:
    """
    List leave applications, most recently applied first.

    **RBAC:** HR reviewers see everyone; other callers only their own.
    """
    if not current_user.is_reviewer:
        employee_id = await directory.resolve(current_user)

    leaves, total = service.list_leaves(
        employee_id=employee_id,
        status=leave_status,
        leave_type=leave_type,
        from_date=from_date,
        to_date=to_date,
        offset=offset,
        limit=limit,
    )
    return LeaveListResponse(
        total=total, offset=offset, limit=limit, records=_to_public(leaves, directory)
    )


@router.get("/{leave_id}", response_model=LeavePublic)
async def get_leave(
    leave_id: int,
    service: LeaveServiceDep,
    directory: DirectoryDep,
    current_user: CurrentUserDep,
) -> LeavePublic:
    leave = service.get_leave(leave_id)
    if not current_user.is_reviewer and leave.employee_id != await directory.resolve(current_user):
        raise NotFound("Leave application not found")
    return _to_public([leave], directory)[0]


@router.put("/{leave_id}", response_model=LeavePublic)
async def update_leave(
    leave_id: int,
    request: LeaveUpdateRequest,
    service: LeaveServiceDep,
    now: NowDep,
    directory: DirectoryDep,
    current_user: CurrentUserDep,
    employee_id: CurrentEmployeeDep,
) -> LeavePublic:
    """Update one of the caller's pending applications."""
    leave = service.update(leave_id, employee_id, request, now)
    await _publish_leave(KafkaTopics.LEAVE_UPDATED, EventType.LEAVE_UPDATED, leave, current_user)
    return _to_public([leave], directory)[0]


@router.put("/{leave_id}/status", response_model=LeavePublic)
async def review_leave(
    leave_id: int,
    request: LeaveReviewRequest,
    service: LeaveServiceDep,
    directory: DirectoryDep,
    current_user: ReviewerDep,
) -> LeavePublic:
    """
    Approve or reject a pending application.

    **RBAC:** HR-Administrators and HR-Managers only.
    """
    leave = service.review(leave_id, current_user.email or current_user.sub, request)
    event_type = (
        EventType.LEAVE_APPROVED
        if leave.status == LeaveStatus.APPROVED.value
        else EventType.LEAVE_REJECTED
    )
    await _publish_leave(KafkaTopics.LEAVE_REVIEWED, event_type, leave, current_user)
    return _to_public([leave], directory)[0]


@router.delete("/{leave_id}", response_model=LeavePublic)
async def cancel_leave(
    leave_id: int,
    service: LeaveServiceDep,
    directory: DirectoryDep,
    current_user: CurrentUserDep,
    employee_id: CurrentEmployeeDep,
    now: NowDep,
) -> LeavePublic:
    """Cancel one of the caller's applications before it starts."""
    leave = service.cancel(leave_id, employee_id, now)
    await _publish_leave(
        KafkaTopics.LEAVE_CANCELLED, EventType.LEAVE_CANCELLED, leave, current_user
    )
    return _to_public([leave], directory)[0]
