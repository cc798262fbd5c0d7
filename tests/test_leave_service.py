"""
Tests for the leave ledger: overlap detection, balances, review and
cancellation.
"""

from datetime import date, datetime

import pydantic
import pytest

from app.core.errors import Conflict, NotFound, PreconditionFailed, ValidationError
from app.core.leave_service import LeaveService, compute_total_days
from app.models.leave import (
    LeaveAllocation,
    LeaveApplication,
    LeaveApplyRequest,
    LeaveDecision,
    LeaveReviewRequest,
    LeaveStatus,
    LeaveType,
    LeaveUpdateRequest,
)


@pytest.fixture
def service(db_session):
    return LeaveService(db_session)


@pytest.fixture
def add_leave(db_session):
    """Factory inserting an application directly."""

    def _add(
        from_date: date,
        to_date: date,
        status: LeaveStatus = LeaveStatus.APPROVED,
        leave_type: LeaveType = LeaveType.CASUAL,
        employee_id: int = 1,
    ) -> LeaveApplication:
        leave = LeaveApplication(
            employee_id=employee_id,
            leave_type=leave_type.value,
            from_date=from_date,
            to_date=to_date,
            total_days=float((to_date - from_date).days + 1),
            reason="Family trip",
            status=status.value,
        )
        db_session.add(leave)
        db_session.commit()
        db_session.refresh(leave)
        return leave

    return _add


NOW = datetime(2024, 3, 1, 10, 0)


def request(from_date: date, to_date: date, leave_type: LeaveType = LeaveType.CASUAL, **kwargs):
    return LeaveApplyRequest(
        leave_type=leave_type, from_date=from_date, to_date=to_date, reason="Personal work", **kwargs
    )


def test_total_days_counts_inclusive_range():
    """Test inclusive day counting and half days."""
    # Assert
    assert compute_total_days(date(2024, 3, 10), date(2024, 3, 12), False) == 3
    assert compute_total_days(date(2024, 3, 10), date(2024, 3, 10), True) == 0.5


def test_total_days_rejects_reversed_range():
    """Test that to_date before from_date is invalid."""
    # Act / Assert
    with pytest.raises(ValidationError):
        compute_total_days(date(2024, 3, 12), date(2024, 3, 10), False)


def test_half_day_on_multi_day_range_is_rejected():
    """Test that a half day must be a single date."""
    # Act / Assert
    with pytest.raises(ValidationError, match="same date"):
        compute_total_days(date(2024, 3, 10), date(2024, 3, 11), True)


def test_half_day_requires_session():
    """Test request validation of the half-day session."""
    # Act / Assert
    with pytest.raises(pydantic.ValidationError):
        request(date(2024, 3, 10), date(2024, 3, 10), is_half_day=True)
    with pytest.raises(pydantic.ValidationError):
        request(date(2024, 3, 10), date(2024, 3, 10), half_day_session="morning")


def test_apply_creates_pending_application(service):
    """Test that a valid application is stored as Pending."""
    # Act
    leave = service.apply(1, request(date(2024, 3, 10), date(2024, 3, 12)), NOW)

    # Assert
    assert leave.id is not None
    assert leave.status == LeaveStatus.PENDING.value
    assert leave.total_days == 3


def test_apply_half_day(service):
    """Test a half-day application."""
    # Act
    leave = service.apply(
        1, request(date(2024, 3, 10), date(2024, 3, 10), is_half_day=True, half_day_session="afternoon"),
        NOW,
    )

    # Assert
    assert leave.total_days == 0.5
    assert leave.half_day_session == "afternoon"


def test_overlapping_application_conflicts(service, add_leave):
    """Test that 10-12 Mar approved blocks 11-13 Mar but allows 13-14 Mar."""
    # Arrange
    add_leave(date(2024, 3, 10), date(2024, 3, 12))

    # Act / Assert
    with pytest.raises(Conflict):
        service.apply(1, request(date(2024, 3, 11), date(2024, 3, 13)), NOW)
    leave = service.apply(1, request(date(2024, 3, 13), date(2024, 3, 14)), NOW)
    assert leave.status == LeaveStatus.PENDING.value


def test_rejected_and_cancelled_applications_do_not_block(service, add_leave):
    """Test that only Pending and Approved applications count for overlap."""
    # Arrange
    add_leave(date(2024, 3, 10), date(2024, 3, 12), status=LeaveStatus.REJECTED)
    add_leave(date(2024, 3, 10), date(2024, 3, 12), status=LeaveStatus.CANCELLED)
    add_leave(date(2024, 3, 10), date(2024, 3, 12), employee_id=2)

    # Act
    leave = service.apply(1, request(date(2024, 3, 11), date(2024, 3, 11)), NOW)

    # Assert
    assert leave.id is not None


def test_balance_arithmetic(service, add_leave):
    """Test that 12 allocated with 5 used leaves 7 remaining."""
    # Arrange
    add_leave(date(2024, 1, 8), date(2024, 1, 12))
    add_leave(date(2023, 12, 26), date(2023, 12, 29))
    add_leave(date(2024, 2, 5), date(2024, 2, 6), status=LeaveStatus.PENDING)

    # Act
    balance = service.get_balance(1, 2024)

    # Assert
    assert balance["Casual"].allocated == 12
    assert balance["Casual"].used == 5
    assert balance["Casual"].remaining == 7
    assert balance["Sick"].used == 0
    assert balance["Earned"].allocated == 15


def test_request_exceeding_balance_is_rejected_with_shortfall(service, add_leave):
    """Test that 8 days against 7 remaining is rejected, 7 days accepted."""
    # Arrange
    add_leave(date(2024, 1, 8), date(2024, 1, 12))

    # Act / Assert
    with pytest.raises(ValidationError, match="short by 1"):
        service.apply(1, request(date(2024, 4, 1), date(2024, 4, 8)), NOW)
    leave = service.apply(1, request(date(2024, 4, 1), date(2024, 4, 7)), NOW)
    assert leave.total_days == 7


def test_exhausted_balance_is_rejected(service, db_session):
    """Test that no days can be requested once the balance is used up."""
    # Arrange
    db_session.add(LeaveAllocation(employee_id=1, leave_type="Sick", allocated=0))
    db_session.commit()

    # Act / Assert
    with pytest.raises(ValidationError, match="Insufficient Sick"):
        service.apply(1, request(date(2024, 4, 1), date(2024, 4, 1), LeaveType.SICK), NOW)


def test_next_year_request_is_checked_against_current_balance(service, add_leave):
    """Test that leave falling next year draws on this year's remaining balance."""
    # Arrange
    add_leave(date(2024, 1, 1), date(2024, 1, 12))

    # Act / Assert
    with pytest.raises(ValidationError, match="Insufficient Casual"):
        service.apply(1, request(date(2025, 1, 6), date(2025, 1, 9)), NOW)
    assert service.get_balance(1, 2025)["Casual"].remaining == 12


def test_unpaid_leave_is_not_balance_checked(service):
    """Test that Unpaid leave is accepted with a zero allocation."""
    # Act
    leave = service.apply(1, request(date(2024, 4, 1), date(2024, 4, 30), LeaveType.UNPAID), NOW)

    # Assert
    assert leave.total_days == 30


def test_stored_allocation_overrides_default(service, db_session):
    """Test that a per-employee allocation replaces the configured default."""
    # Arrange
    db_session.add(LeaveAllocation(employee_id=1, leave_type="Earned", allocated=20))
    db_session.add(LeaveAllocation(employee_id=1, leave_type="Maternity", allocated=180))
    db_session.commit()

    # Act
    balance = service.get_balance(1, 2024)

    # Assert
    assert balance["Earned"].allocated == 20
    assert balance["Maternity"].remaining == 180


def test_review_approves_pending(service, add_leave):
    """Test that a reviewer approves a pending application once."""
    # Arrange
    leave = add_leave(date(2024, 3, 10), date(2024, 3, 12), status=LeaveStatus.PENDING)

    # Act
    reviewed = service.review(
        leave.id, "hr@company.com", LeaveReviewRequest(decision=LeaveDecision.APPROVED, note="Enjoy")
    )

    # Assert
    assert reviewed.status == LeaveStatus.APPROVED.value
    assert reviewed.reviewed_by == "hr@company.com"
    assert reviewed.reviewed_at is not None
    assert reviewed.decision_note == "Enjoy"
    with pytest.raises(Conflict, match="already been processed"):
        service.review(leave.id, "hr@company.com", LeaveReviewRequest(decision=LeaveDecision.APPROVED))


def test_rejection_requires_reason(service, add_leave):
    """Test that rejecting without a reason is invalid."""
    # Arrange
    leave = add_leave(date(2024, 3, 10), date(2024, 3, 12), status=LeaveStatus.PENDING)

    # Act / Assert
    with pytest.raises(ValidationError):
        service.review(leave.id, "hr@company.com", LeaveReviewRequest(decision=LeaveDecision.REJECTED))
    rejected = service.review(
        leave.id,
        "hr@company.com",
        LeaveReviewRequest(decision=LeaveDecision.REJECTED, rejection_reason="Release week"),
    )
    assert rejected.rejection_reason == "Release week"


def test_review_unknown_application(service):
    """Test that reviewing a missing application is not found."""
    # Act / Assert
    with pytest.raises(NotFound):
        service.review(999, "hr@company.com", LeaveReviewRequest(decision=LeaveDecision.APPROVED))


def test_cancel_before_start(service, add_leave):
    """Test that an approved leave starting tomorrow can be cancelled."""
    # Arrange
    leave = add_leave(date(2024, 3, 12), date(2024, 3, 13))

    # Act
    cancelled = service.cancel(leave.id, 1, datetime(2024, 3, 11, 17, 0))

    # Assert
    assert cancelled.status == LeaveStatus.CANCELLED.value


def test_cancel_after_start_is_rejected(service, add_leave):
    """Test that a leave that started yesterday cannot be cancelled."""
    # Arrange
    leave = add_leave(date(2024, 3, 10), date(2024, 3, 13))

    # Act / Assert
    with pytest.raises(PreconditionFailed, match="already started"):
        service.cancel(leave.id, 1, datetime(2024, 3, 11, 9, 0))


def test_cancel_on_start_day_is_rejected(service, add_leave):
    """Test that the start of the first leave day closes the cancellation window."""
    # Arrange
    leave = add_leave(date(2024, 3, 11), date(2024, 3, 11))

    # Act / Assert
    with pytest.raises(PreconditionFailed):
        service.cancel(leave.id, 1, datetime(2024, 3, 11, 0, 0))


def test_cancel_processed_or_foreign_application(service, add_leave):
    """Test cancellation of rejected and other employees' applications."""
    # Arrange
    rejected = add_leave(date(2024, 3, 20), date(2024, 3, 21), status=LeaveStatus.REJECTED)
    foreign = add_leave(date(2024, 3, 20), date(2024, 3, 21), employee_id=2)

    # Act / Assert
    with pytest.raises(PreconditionFailed, match="already processed"):
        service.cancel(rejected.id, 1, datetime(2024, 3, 11, 9, 0))
    with pytest.raises(NotFound):
        service.cancel(foreign.id, 1, datetime(2024, 3, 11, 9, 0))


def test_update_recomputes_and_excludes_itself_from_overlap(service):
    """Test that moving a pending application re-validates it."""
    # Arrange
    leave = service.apply(1, request(date(2024, 3, 10), date(2024, 3, 12)), NOW)

    # Act
    updated = service.update(
        leave.id, 1, LeaveUpdateRequest(from_date=date(2024, 3, 11), to_date=date(2024, 3, 15)), NOW
    )

    # Assert
    assert updated.from_date == date(2024, 3, 11)
    assert updated.total_days == 5


def test_update_checks_overlap_with_other_applications(service, add_leave):
    """Test that an update cannot move onto another active application."""
    # Arrange
    add_leave(date(2024, 3, 20), date(2024, 3, 22))
    leave = service.apply(1, request(date(2024, 3, 10), date(2024, 3, 12)), NOW)

    # Act / Assert
    with pytest.raises(Conflict):
        service.update(leave.id, 1, LeaveUpdateRequest(to_date=date(2024, 3, 21)), NOW)


def test_update_only_pending(service, add_leave):
    """Test that reviewed applications cannot be edited."""
    # Arrange
    leave = add_leave(date(2024, 3, 10), date(2024, 3, 12))

    # Act / Assert
    with pytest.raises(Conflict):
        service.update(leave.id, 1, LeaveUpdateRequest(reason="Changed plans"), NOW)


def test_list_leaves_filters(service, add_leave):
    """Test listing by employee and status."""
    # Arrange
    add_leave(date(2024, 3, 10), date(2024, 3, 12))
    add_leave(date(2024, 4, 10), date(2024, 4, 12), status=LeaveStatus.PENDING)
    add_leave(date(2024, 3, 10), date(2024, 3, 12), employee_id=2)

    # Act
    mine, total = service.list_leaves(employee_id=1)
    pending, pending_total = service.list_leaves(employee_id=1, status=LeaveStatus.PENDING)

    # Assert
    assert total == 2
    assert len(mine) == 2
    assert pending_total == 1
    assert pending[0].from_date == date(2024, 4, 10)


def test_calendar_returns_approved_leaves_overlapping_month(service, add_leave):
    """Test that the calendar includes leaves spanning the month boundary."""
    # Arrange
    spanning = add_leave(date(2024, 2, 28), date(2024, 3, 2))
    inside = add_leave(date(2024, 3, 18), date(2024, 3, 19), employee_id=2)
    add_leave(date(2024, 3, 25), date(2024, 3, 26), status=LeaveStatus.PENDING, employee_id=3)
    add_leave(date(2024, 4, 1), date(2024, 4, 2), employee_id=4)

    # Act
    leaves = service.calendar(2024, 3)
    department_only = service.calendar(2024, 3, employee_ids=[2])

    # Assert
    assert [leave.id for leave in leaves] == [spanning.id, inside.id]
    assert [leave.id for leave in department_only] == [inside.id]
    assert service.calendar(2024, 3, employee_ids=[]) == []
