"""
Attendance session manager.

Drives the per-employee, per-day attendance state machine:

    idle -> active               (check-in)
    active -> completed          (check-out within office hours)
    active -> auto-stopped       (check-out after office end, or lazy reconciliation)
    completed/auto-stopped       (late checkout evidence only)

There is no background scheduler. Sessions left open after the office end are
closed the next time they are read, with a synthesized checkout at the office
end time.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from app.core.errors import Conflict, NotFound, PreconditionFailed, ValidationError
from app.core.evidence import EvidenceStore, validate_evidence
from app.core.holidays import HolidayCalendar
from app.core.logging import get_logger
from app.core.office_hours import OfficeWindow, worked_minutes
from app.models.attendance import (
    AttendancePublic,
    AttendanceRecord,
    Evidence,
    FinalStatus,
    HolidayInfo,
    OfficeWindowInfo,
    PunchLocation,
    SessionStatus,
    TodayStatus,
)

logger = get_logger(__name__)

MAX_PAGE_SIZE = 100


class AttendanceService:
    """Check-in, check-out and status reads for attendance records."""

    def __init__(
        self,
        session: Session,
        holidays: HolidayCalendar,
        evidence_store: EvidenceStore,
        window: Optional[OfficeWindow] = None,
    ):
        self.session = session
        self.holidays = holidays
        self.evidence_store = evidence_store
        self.window = window or OfficeWindow.from_settings()
        # Records closed by reconciliation during this unit of work
        self.auto_stopped: list[AttendanceRecord] = []

    def get_record(self, employee_id: int, day: date) -> Optional[AttendanceRecord]:
        statement = select(AttendanceRecord).where(
            AttendanceRecord.employee_id == employee_id, AttendanceRecord.day == day
        )
        return self.session.exec(statement).first()

    def _ensure_working_day(self, employee_id: int, day: date) -> None:
        if self.window.is_weekend(day):
            raise PreconditionFailed("Attendance cannot be marked on weekends")
        holiday = self.holidays.is_holiday(day, employee_id)
        if holiday is not None:
            raise PreconditionFailed(
                f"Today is a holiday: {holiday.name}. Attendance cannot be marked."
            )

    def _close_session(
        self, record: AttendanceRecord, checkout_at: datetime, status: SessionStatus
    ) -> None:
        record.check_out_at = checkout_at
        record.worked_minutes = worked_minutes(record.check_in_at, checkout_at)
        record.final_status = (
            FinalStatus.PRESENT.value
            if self.window.present_verdict(record.worked_minutes)
            else FinalStatus.ABSENT.value
        )
        record.session_status = status.value
        record.updated_at = datetime.utcnow()

    def _commit(self, record: AttendanceRecord) -> AttendanceRecord:
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return record

    async def check_in(
        self,
        employee_id: int,
        now: datetime,
        evidence: Optional[Evidence],
        location: Optional[PunchLocation] = None,
        source: Optional[str] = None,
    ) -> AttendanceRecord:
        """
        Open today's attendance session.

        Evidence is uploaded before anything is written, so an upload failure
        leaves no state behind. A concurrent check-in that loses the race on
        the (employee, day) constraint is reported as a conflict.

        Raises:
            ValidationError: evidence missing or unacceptable
            PreconditionFailed: weekend, holiday, office ended or check-in window closed
            Conflict: already checked in today
            UploadError: the evidence store failed
        """
        evidence = validate_evidence(evidence)
        day = now.date()
        self._ensure_working_day(employee_id, day)

        record = self.get_record(employee_id, day)
        if record is not None and record.has_checked_in:
            raise Conflict("You have already checked in today")

        if now > self.window.end_on(day):
            raise PreconditionFailed("Office time has ended for today")
        if now > self.window.midpoint_on(day):
            cutoff = self.window.midpoint_on(day).strftime("%H:%M")
            raise PreconditionFailed(f"Check-in window closed at {cutoff}")

        url = await self.evidence_store.upload(
            evidence.content,
            f"attendance/{employee_id}/{day.isoformat()}/checkin-{evidence.filename}",
            evidence.content_type,
        )

        if record is None:
            record = AttendanceRecord(employee_id=employee_id, day=day)
        record.check_in_at = now
        record.session_status = SessionStatus.ACTIVE.value
        record.final_status = FinalStatus.ABSENT.value
        record.check_in_evidence_url = url
        record.check_in_location = location.describe() if location else None
        record.check_in_source = source
        record.updated_at = datetime.utcnow()

        try:
            record = self._commit(record)
        except IntegrityError:
            self.session.rollback()
            logger.warning(
                f"Concurrent check-in for employee {employee_id} on {day}, "
                f"evidence {url} is orphaned"
            )
            raise Conflict("You have already checked in today")

        logger.info(f"Employee {employee_id} checked in at {now.isoformat()}")
        return record

    async def check_out(
        self,
        employee_id: int,
        now: datetime,
        evidence: Optional[Evidence],
        location: Optional[PunchLocation] = None,
        source: Optional[str] = None,
    ) -> AttendanceRecord:
        """
        Close today's attendance session, or attach late checkout evidence.

        A session already closed without evidence (for instance by
        reconciliation) accepts evidence later the same day; timestamps and
        the final status are left as they are.

        Raises:
            PreconditionFailed: weekend or holiday
            NotFound: no check-in today
            ValidationError: evidence missing, or checkout not after check-in
            Conflict: already checked out with evidence
            UploadError: the evidence store failed
        """
        day = now.date()
        self._ensure_working_day(employee_id, day)

        record = self.get_record(employee_id, day)
        if record is None or not record.has_checked_in:
            raise NotFound("You need to check in first")

        if record.has_checked_out:
            if record.check_out_evidence_url is None:
                return await self._attach_late_evidence(record, evidence)
            raise Conflict("You have already checked out today")

        evidence = validate_evidence(evidence)
        checkout_at = self.window.effective_checkout(day, now)
        if checkout_at <= record.check_in_at:
            raise ValidationError("Check-out time must be later than check-in time")

        url = await self.evidence_store.upload(
            evidence.content,
            f"attendance/{employee_id}/{day.isoformat()}/checkout-{evidence.filename}",
            evidence.content_type,
        )

        status = (
            SessionStatus.COMPLETED
            if now <= self.window.end_on(day)
            else SessionStatus.AUTO_STOPPED
        )
        self._close_session(record, checkout_at, status)
        record.check_out_evidence_url = url
        record.check_out_location = location.describe() if location else None
        record.check_out_source = source
        record = self._commit(record)

        logger.info(
            f"Employee {employee_id} checked out at {checkout_at.isoformat()} "
            f"({record.worked_minutes} min, {record.final_status})"
        )
        return record

    async def _attach_late_evidence(
        self, record: AttendanceRecord, evidence: Optional[Evidence]
    ) -> AttendanceRecord:
        evidence = validate_evidence(evidence)
        url = await self.evidence_store.upload(
            evidence.content,
            f"attendance/{record.employee_id}/{record.day.isoformat()}/checkout-{evidence.filename}",
            evidence.content_type,
        )
        record.check_out_evidence_url = url
        record.updated_at = datetime.utcnow()
        record = self._commit(record)
        logger.info(f"Attached late checkout evidence to attendance {record.id}")
        return record

    def reconcile(self, record: AttendanceRecord, now: datetime) -> bool:
        """
        Close a stale active session at the office end.

        Returns True when the record was changed. The caller commits.
        """
        if record.session_status != SessionStatus.ACTIVE.value or not record.is_open:
            return False
        office_end = self.window.end_on(record.day)
        if now <= office_end:
            return False

        checkout_at = max(office_end, record.check_in_at)
        self._close_session(record, checkout_at, SessionStatus.AUTO_STOPPED)
        self.session.add(record)
        self.auto_stopped.append(record)
        logger.info(
            f"Auto-stopped attendance {record.id} for employee {record.employee_id} "
            f"on {record.day} ({record.worked_minutes} min, {record.final_status})"
        )
        return True

    def _reconcile_stale(
        self,
        now: datetime,
        employee_id: Optional[int] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> None:
        statement = select(AttendanceRecord).where(
            AttendanceRecord.session_status == SessionStatus.ACTIVE.value,
            AttendanceRecord.day <= now.date(),
        )
        if employee_id is not None:
            statement = statement.where(AttendanceRecord.employee_id == employee_id)
        if from_date is not None:
            statement = statement.where(AttendanceRecord.day >= from_date)
        if to_date is not None:
            statement = statement.where(AttendanceRecord.day <= to_date)

        changed = [record for record in self.session.exec(statement).all() if self.reconcile(record, now)]
        if changed:
            self.session.commit()
            for record in changed:
                self.session.refresh(record)

    def get_today_status(self, employee_id: int, now: datetime) -> TodayStatus:
        """Today's record (reconciled), day eligibility and office window."""
        day = now.date()
        record = self.get_record(employee_id, day)
        if record is not None and self.reconcile(record, now):
            record = self._commit(record)

        is_weekend = self.window.is_weekend(day)
        holiday = self.holidays.is_holiday(day, employee_id)

        return TodayStatus(
            employee_id=employee_id,
            day=day,
            attendance=AttendancePublic.model_validate(record) if record else None,
            is_weekend=is_weekend,
            holiday=HolidayInfo(name=holiday.name, type=holiday.holiday_type) if holiday else None,
            can_mark_attendance=not is_weekend and holiday is None,
            office_window=OfficeWindowInfo(
                start=self.window.start.strftime("%H:%M"),
                end=self.window.end.strftime("%H:%M"),
                check_in_cutoff=self.window.midpoint_on(day).strftime("%H:%M"),
                min_present_minutes=self.window.min_present_minutes,
            ),
        )

    def list_attendance(
        self,
        now: datetime,
        employee_id: Optional[int] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        final_status: Optional[FinalStatus] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[AttendanceRecord], int]:
        """
        List attendance records, newest day first.

        Stale active sessions within the filter are reconciled before the
        query, so status filters see their final verdicts.

        Returns:
            The page of records and the total number of matches
        """
        if from_date and to_date and from_date > to_date:
            raise ValidationError("from_date must not be after to_date")
        limit = max(1, min(limit, MAX_PAGE_SIZE))

        self._reconcile_stale(now, employee_id, from_date, to_date)

        statement = select(AttendanceRecord)
        count_statement = select(func.count()).select_from(AttendanceRecord)
        conditions = []
        if employee_id is not None:
            conditions.append(AttendanceRecord.employee_id == employee_id)
        if from_date is not None:
            conditions.append(AttendanceRecord.day >= from_date)
        if to_date is not None:
            conditions.append(AttendanceRecord.day <= to_date)
        if final_status is not None:
            conditions.append(AttendanceRecord.final_status == final_status.value)
        if conditions:
            statement = statement.where(*conditions)
            count_statement = count_statement.where(*conditions)

        total = self.session.exec(count_statement).one()
        statement = (
            statement.order_by(col(AttendanceRecord.day).desc(), col(AttendanceRecord.id).desc())
            .offset(offset)
            .limit(limit)
        )
        records = list(self.session.exec(statement).all())
        return records, total
