from datetime import date
from typing import Annotated, Optional

from fastapi import APIRouter, File, Form, Query, UploadFile

from app.api.dependencies import (
    AttendanceRateLimitDep,
    AttendanceServiceDep,
    CurrentEmployeeDep,
    CurrentUserDep,
    DirectoryDep,
    NowDep,
)
from app.core.attendance_service import MAX_PAGE_SIZE, AttendanceService
from app.core.employee_service import EmployeeDirectory
from app.core.events import AttendanceEvent, AuditActionEvent, EventType, create_event
from app.core.kafka import publish_best_effort
from app.core.logging import get_logger
from app.core.security import TokenData
from app.core.topics import KafkaTopics
from app.models.attendance import (
    AttendanceListResponse,
    AttendancePublic,
    AttendanceRecord,
    Evidence,
    FinalStatus,
    PunchLocation,
    TodayStatus,
)

logger = get_logger(__name__)

# Create router with prefix and tags for better organization
router = APIRouter(
    prefix="/attendance",
    tags=["attendance"],
    responses={404: {"description": "Attendance record not found"}},
)


async def _read_evidence(image: Optional[UploadFile]) -> Optional[Evidence]:
    if image is None:
        return None
    content = await image.read()
    return Evidence(
        content=content,
        filename=image.filename or "evidence",
        content_type=image.content_type,
    )


def _to_public(records: list[AttendanceRecord], directory: EmployeeDirectory) -> list[AttendancePublic]:
    summaries = directory.get_summaries(record.employee_id for record in records)
    return [
        AttendancePublic.model_validate(record).model_copy(
            update={"employee": summaries.get(record.employee_id)}
        )
        for record in records
    ]


async def _publish_attendance(
    topic: str,
    event_type: EventType,
    record: AttendanceRecord,
    current_user: Optional[TokenData] = None,
) -> None:
    event = create_event(
        event_type,
        AttendanceEvent(
            attendance_id=record.id,
            employee_id=record.employee_id,
            day=record.day,
            check_in_at=record.check_in_at,
            check_out_at=record.check_out_at,
            session_status=record.session_status,
            final_status=record.final_status,
            worked_minutes=record.worked_minutes,
        ),
        actor_user_id=current_user.sub if current_user else None,
    )
    await publish_best_effort(topic, event, key=str(record.employee_id))

    if current_user is not None:
        action = event_type.value.split(".", 1)[1]
        audit = create_event(
            EventType.AUDIT_ACTION,
            AuditActionEvent(
                actor_user_id=current_user.sub,
                action=action,
                resource_type="attendance",
                resource_id=record.id,
                employee_id=record.employee_id,
                description=f"Attendance {action} for employee {record.employee_id} on {record.day}",
            ),
            actor_user_id=current_user.sub,
        )
        await publish_best_effort(KafkaTopics.AUDIT_ACTION, audit, key=str(record.employee_id))


async def _publish_auto_stopped(service: AttendanceService) -> None:
    for record in service.auto_stopped:
        await _publish_attendance(
            KafkaTopics.ATTENDANCE_AUTO_STOPPED, EventType.ATTENDANCE_AUTO_STOPPED, record
        )
    service.auto_stopped.clear()


@router.post(
    "/check-in",
    response_model=AttendancePublic,
    status_code=201,
    dependencies=[AttendanceRateLimitDep],
)
async def check_in(
    service: AttendanceServiceDep,
    directory: DirectoryDep,
    current_user: CurrentUserDep,
    employee_id: CurrentEmployeeDep,
    now: NowDep,
    image: Annotated[Optional[UploadFile], File()] = None,
    latitude: Annotated[Optional[float], Form()] = None,
    longitude: Annotated[Optional[float], Form()] = None,
    address: Annotated[Optional[str], Form(max_length=200)] = None,
    source: Annotated[Optional[str], Form(max_length=100)] = None,
) -> AttendancePublic:
    """
    Check in for today.

    Requires a photo in ``image``. Accepted on working days up to the
    midpoint of the office window.

    Raises:
        422 missing evidence, 412 weekend/holiday/closed window,
        409 already checked in, 502 evidence upload failed
    """
    logger.info(f"Check-in initiated by {current_user.email or current_user.sub}")
    record = await service.check_in(
        employee_id,
        now,
        await _read_evidence(image),
        PunchLocation(latitude=latitude, longitude=longitude, address=address),
        source,
    )
    await _publish_attendance(
        KafkaTopics.ATTENDANCE_CHECKIN, EventType.ATTENDANCE_CHECKIN, record, current_user
    )
    return _to_public([record], directory)[0]


@router.post(
    "/check-out",
    response_model=AttendancePublic,
    dependencies=[AttendanceRateLimitDep],
)
async def check_out(
    service: AttendanceServiceDep,
    directory: DirectoryDep,
    current_user: CurrentUserDep,
    employee_id: CurrentEmployeeDep,
    now: NowDep,
    image: Annotated[Optional[UploadFile], File()] = None,
    latitude: Annotated[Optional[float], Form()] = None,
    longitude: Annotated[Optional[float], Form()] = None,
    address: Annotated[Optional[str], Form(max_length=200)] = None,
    source: Annotated[Optional[str], Form(max_length=100)] = None,
) -> AttendancePublic:
    """
    Check out for today, or attach missing checkout evidence.

    Checkouts after the office end are clamped to it and marked auto-stopped.

    Raises:
        404 no check-in today, 409 already checked out, 412 weekend/holiday,
        422 missing evidence, 502 evidence upload failed
    """
    logger.info(f"Check-out initiated by {current_user.email or current_user.sub}")
    existing = service.get_record(employee_id, now.date())
    already_closed = existing is not None and existing.has_checked_out

    record = await service.check_out(
        employee_id,
        now,
        await _read_evidence(image),
        PunchLocation(latitude=latitude, longitude=longitude, address=address),
        source,
    )
    if already_closed:
        await _publish_attendance(
            KafkaTopics.ATTENDANCE_EVIDENCE_PATCHED,
            EventType.ATTENDANCE_EVIDENCE_PATCHED,
            record,
            current_user,
        )
    else:
        await _publish_attendance(
            KafkaTopics.ATTENDANCE_CHECKOUT, EventType.ATTENDANCE_CHECKOUT, record, current_user
        )
    return _to_public([record], directory)[0]


@router.get("/today", response_model=TodayStatus)
async def get_today_status(
    service: AttendanceServiceDep,
    directory: DirectoryDep,
    employee_id: CurrentEmployeeDep,
    now: NowDep,
) -> TodayStatus:
    """Today's attendance, day eligibility and the office window."""
    today = service.get_today_status(employee_id, now)
    await _publish_auto_stopped(service)
    if today.attendance is not None:
        summaries = directory.get_summaries([employee_id])
        today.attendance.employee = summaries.get(employee_id)
    return today


@router.get("", response_model=AttendanceListResponse)
async def list_attendance(
    service: AttendanceServiceDep,
    directory: DirectoryDep,
    current_user: CurrentUserDep,
    now: NowDep,
    employee_id: Optional[int] = Query(None, description="Filter by employee (HR only)"),
    from_date: Optional[date] = Query(None, description="First day, inclusive"),
    to_date: Optional[date] = Query(None, description="Last day, inclusive"),
    final_status: Optional[FinalStatus] = Query(None, description="Filter by final status"),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=MAX_PAGE_SIZE),
) -> AttendanceListResponse:
    """
    List attendance records, newest first.

    **RBAC:** HR reviewers may list any employee; everyone else only sees
    their own records.
    """
    if not current_user.is_reviewer:
        employee_id = await directory.resolve(current_user)

    records, total = service.list_attendance(
        now,
        employee_id=employee_id,
        from_date=from_date,
        to_date=to_date,
        final_status=final_status,
        offset=offset,
        limit=limit,
    )
    await _publish_auto_stopped(service)
    return AttendanceListResponse(
        total=total, offset=offset, limit=limit, records=_to_public(records, directory)
    )
