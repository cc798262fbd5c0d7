"""
Leave ledger.

Applications move Pending -> Approved/Rejected through a single review, and
Pending/Approved -> Cancelled by their owner before the leave starts.
Two Pending/Approved applications of the same employee never overlap, and
balances are derived on demand from Approved applications.
"""

import calendar as month_calendar
from datetime import date, datetime, time
from typing import Any, Optional

from sqlalchemy import func
from sqlmodel import Session, col, select

from app.core.config import Settings, settings
from app.core.errors import Conflict, NotFound, PreconditionFailed, ValidationError
from app.core.logging import get_logger
from app.models.leave import (
    ACTIVE_LEAVE_STATUSES,
    LeaveAllocation,
    LeaveApplication,
    LeaveApplyRequest,
    LeaveBalanceEntry,
    LeaveDecision,
    LeaveReviewRequest,
    LeaveStatus,
    LeaveType,
    LeaveUpdateRequest,
)

logger = get_logger(__name__)

MAX_PAGE_SIZE = 100


def compute_total_days(from_date: date, to_date: date, is_half_day: bool) -> float:
    """
    Number of leave days requested.

    Half-day leave is only valid on a single-day range and counts 0.5;
    otherwise every calendar day in the inclusive range counts.

    Raises:
        ValidationError: if the range is reversed, or half-day spans several days
    """
    if to_date < from_date:
        raise ValidationError("to_date must be on or after from_date")
    if is_half_day:
        if from_date != to_date:
            raise ValidationError("Half-day leave must start and end on the same date")
        return 0.5
    return float((to_date - from_date).days + 1)


class LeaveService:
    """Apply, update, review and cancel leave applications; report balances."""

    def __init__(self, session: Session, config: Settings = settings):
        self.session = session
        self.config = config

    def get_leave(self, application_id: int) -> LeaveApplication:
        leave = self.session.get(LeaveApplication, application_id)
        if leave is None:
            raise NotFound("Leave application not found")
        return leave

    def _get_owned(self, application_id: int, employee_id: int) -> LeaveApplication:
        leave = self.session.get(LeaveApplication, application_id)
        if leave is None or leave.employee_id != employee_id:
            raise NotFound("Leave application not found")
        return leave

    def find_conflicts(
        self,
        employee_id: int,
        from_date: date,
        to_date: date,
        exclude_id: Optional[int] = None,
    ) -> list[LeaveApplication]:
        """Pending or Approved applications overlapping ``[from_date, to_date]``."""
        statement = select(LeaveApplication).where(
            LeaveApplication.employee_id == employee_id,
            col(LeaveApplication.status).in_(ACTIVE_LEAVE_STATUSES),
            LeaveApplication.from_date <= to_date,
            LeaveApplication.to_date >= from_date,
        )
        if exclude_id is not None:
            statement = statement.where(LeaveApplication.id != exclude_id)
        return list(self.session.exec(statement).all())

    def allocations(self, employee_id: int) -> dict[str, float]:
        """Allocated days per leave type, defaults overridden by stored rows."""
        allocated = {key: float(value) for key, value in self.config.DEFAULT_LEAVE_ALLOCATIONS.items()}
        rows = self.session.exec(
            select(LeaveAllocation).where(LeaveAllocation.employee_id == employee_id)
        ).all()
        for row in rows:
            allocated[row.leave_type] = float(row.allocated)
        return allocated

    def get_balance(self, employee_id: int, year: int) -> dict[str, LeaveBalanceEntry]:
        """
        Allocated, used and remaining days per leave type for ``year``.

        ``used`` sums Approved applications starting in ``year``. Remaining is
        not clamped and may go negative if allocations are lowered.
        """
        statement = (
            select(LeaveApplication.leave_type, func.sum(LeaveApplication.total_days))
            .where(
                LeaveApplication.employee_id == employee_id,
                LeaveApplication.status == LeaveStatus.APPROVED.value,
                LeaveApplication.from_date >= date(year, 1, 1),
                LeaveApplication.from_date <= date(year, 12, 31),
            )
            .group_by(LeaveApplication.leave_type)
        )
        used = {leave_type: float(total or 0) for leave_type, total in self.session.exec(statement).all()}

        return {
            leave_type: LeaveBalanceEntry(
                allocated=allocated,
                used=used.get(leave_type, 0.0),
                remaining=allocated - used.get(leave_type, 0.0),
            )
            for leave_type, allocated in self.allocations(employee_id).items()
        }

    def _check_balance(self, employee_id: int, leave_type: str, total_days: float, now: datetime) -> None:
        # Always checked against the current calendar year, whatever year the leave falls in
        if leave_type == LeaveType.UNPAID.value:
            return
        entry = self.get_balance(employee_id, now.year).get(leave_type)
        if entry is None:
            return
        if entry.remaining <= 0:
            raise ValidationError(f"Insufficient {leave_type} leave balance")
        if total_days > entry.remaining:
            raise ValidationError(
                f"Requested {total_days:g} days exceeds available {leave_type} leave "
                f"balance of {entry.remaining:g} days (short by {total_days - entry.remaining:g})"
            )

    def _check_overlap(
        self, employee_id: int, from_date: date, to_date: date, exclude_id: Optional[int] = None
    ) -> None:
        conflicts = self.find_conflicts(employee_id, from_date, to_date, exclude_id)
        if conflicts:
            logger.info(
                f"Leave for employee {employee_id} {from_date}..{to_date} overlaps "
                f"application(s) {[leave.id for leave in conflicts]}"
            )
            raise Conflict("You already have a leave application for the selected dates")

    def _save(self, leave: LeaveApplication) -> LeaveApplication:
        self.session.add(leave)
        self.session.commit()
        self.session.refresh(leave)
        return leave

    def apply(self, employee_id: int, request: LeaveApplyRequest, now: datetime) -> LeaveApplication:
        """
        Create a Pending application.

        The balance checked is the one of the calendar year of ``now``.

        Raises:
            ValidationError: bad range, half-day misuse or insufficient balance
            Conflict: overlaps a Pending or Approved application
        """
        total_days = compute_total_days(request.from_date, request.to_date, request.is_half_day)
        self._check_overlap(employee_id, request.from_date, request.to_date)
        self._check_balance(employee_id, request.leave_type.value, total_days, now)

        leave = LeaveApplication(
            employee_id=employee_id,
            leave_type=request.leave_type.value,
            from_date=request.from_date,
            to_date=request.to_date,
            total_days=total_days,
            reason=request.reason,
            is_half_day=request.is_half_day,
            half_day_session=request.half_day_session.value if request.half_day_session else None,
            handover_to=request.handover_to,
            handover_notes=request.handover_notes,
            emergency_contact_name=request.emergency_contact_name,
            emergency_contact_phone=request.emergency_contact_phone,
        )
        leave = self._save(leave)
        logger.info(
            f"Employee {employee_id} applied for {leave.total_days:g} day(s) of "
            f"{leave.leave_type} leave (application {leave.id})"
        )
        return leave

    def update(
        self, application_id: int, employee_id: int, request: LeaveUpdateRequest, now: datetime
    ) -> LeaveApplication:
        """
        Modify a Pending application owned by ``employee_id``.

        The range, total days, overlap and balance are re-validated against
        the merged values.
        """
        leave = self._get_owned(application_id, employee_id)
        if leave.status != LeaveStatus.PENDING.value:
            raise Conflict("You can only update pending leave applications")

        changes: dict[str, Any] = request.model_dump(exclude_unset=True)
        leave_type = changes.get("leave_type", leave.leave_type)
        leave_type = leave_type.value if isinstance(leave_type, LeaveType) else leave_type
        from_date = changes.get("from_date") or leave.from_date
        to_date = changes.get("to_date") or leave.to_date
        is_half_day = changes.get("is_half_day", leave.is_half_day)
        if is_half_day is None:
            is_half_day = False
        session_value = changes.get("half_day_session", leave.half_day_session)
        if not is_half_day:
            session_value = None
        elif session_value is None:
            raise ValidationError("half_day_session is required for half-day leave")

        total_days = compute_total_days(from_date, to_date, is_half_day)
        self._check_overlap(employee_id, from_date, to_date, exclude_id=leave.id)
        self._check_balance(employee_id, leave_type, total_days, now)

        leave.leave_type = leave_type
        leave.from_date = from_date
        leave.to_date = to_date
        leave.total_days = total_days
        leave.is_half_day = is_half_day
        leave.half_day_session = getattr(session_value, "value", session_value)
        for field in ("reason", "handover_to", "handover_notes"):
            if changes.get(field) is not None:
                setattr(leave, field, changes[field])
        leave.updated_at = datetime.utcnow()

        leave = self._save(leave)
        logger.info(f"Employee {employee_id} updated leave application {leave.id}")
        return leave

    def review(self, application_id: int, reviewer: str, request: LeaveReviewRequest) -> LeaveApplication:
        """
        Approve or reject a Pending application.

        Raises:
            NotFound: unknown application
            Conflict: the application was already processed
            ValidationError: rejection without a reason
        """
        leave = self.get_leave(application_id)
        if leave.status != LeaveStatus.PENDING.value:
            raise Conflict("Leave application has already been processed")
        if request.decision == LeaveDecision.REJECTED and not (request.rejection_reason or "").strip():
            raise ValidationError("A rejection reason is required")

        leave.status = request.decision.value
        leave.reviewed_by = reviewer
        leave.reviewed_at = datetime.utcnow()
        leave.decision_note = request.note
        if request.decision == LeaveDecision.REJECTED:
            leave.rejection_reason = request.rejection_reason
        leave.updated_at = datetime.utcnow()

        leave = self._save(leave)
        logger.info(f"Leave application {leave.id} {leave.status.lower()} by {reviewer}")
        return leave

    def cancel(self, application_id: int, employee_id: int, now: datetime) -> LeaveApplication:
        """
        Cancel an application owned by ``employee_id`` before it starts.

        Raises:
            NotFound: unknown application or not owned by the caller
            PreconditionFailed: already processed, or the leave has started
        """
        leave = self._get_owned(application_id, employee_id)
        if leave.status in (LeaveStatus.REJECTED.value, LeaveStatus.CANCELLED.value):
            raise PreconditionFailed("Leave application is already processed")
        if now >= datetime.combine(leave.from_date, time.min):
            raise PreconditionFailed("Cannot cancel leave that has already started")

        leave.status = LeaveStatus.CANCELLED.value
        leave.updated_at = datetime.utcnow()
        leave = self._save(leave)
        logger.info(f"Employee {employee_id} cancelled leave application {leave.id}")
        return leave

    def list_leaves(
        self,
        employee_id: Optional[int] = None,
        status: Optional[LeaveStatus] = None,
        leave_type: Optional[LeaveType] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[LeaveApplication], int]:
        """Applications matching the filters, most recently applied first."""
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        conditions = []
        if employee_id is not None:
            conditions.append(LeaveApplication.employee_id == employee_id)
        if status is not None:
            conditions.append(LeaveApplication.status == status.value)
        if leave_type is not None:
            conditions.append(LeaveApplication.leave_type == leave_type.value)
        if from_date is not None:
            conditions.append(LeaveApplication.from_date >= from_date)
        if to_date is not None:
            conditions.append(LeaveApplication.from_date <= to_date)

        statement = select(LeaveApplication)
        count_statement = select(func.count()).select_from(LeaveApplication)
        if conditions:
            statement = statement.where(*conditions)
            count_statement = count_statement.where(*conditions)

        total = self.session.exec(count_statement).one()
        statement = (
            statement.order_by(col(LeaveApplication.applied_at).desc(), col(LeaveApplication.id).desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self.session.exec(statement).all()), total

    def calendar(
        self, year: int, month: int, employee_ids: Optional[list[int]] = None
    ) -> list[LeaveApplication]:
        """Approved applications overlapping the given month, by start date."""
        if not 1 <= month <= 12:
            raise ValidationError("month must be between 1 and 12")
        first = date(year, month, 1)
        last = date(year, month, month_calendar.monthrange(year, month)[1])

        statement = select(LeaveApplication).where(
            LeaveApplication.status == LeaveStatus.APPROVED.value,
            LeaveApplication.from_date <= last,
            LeaveApplication.to_date >= first,
        )
        if employee_ids is not None:
            if not employee_ids:
                return []
            statement = statement.where(col(LeaveApplication.employee_id).in_(employee_ids))
        statement = statement.order_by(col(LeaveApplication.from_date), col(LeaveApplication.id))
        return list(self.session.exec(statement).all())
