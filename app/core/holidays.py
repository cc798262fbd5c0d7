"""
Holiday calendar backed by the holidays table.
"""

from datetime import date
from typing import Optional

from sqlmodel import Session, select

from app.core.logging import get_logger
from app.models.employee import EmployeeCache
from app.models.holiday import Holiday, HolidayApplicability

logger = get_logger(__name__)


class HolidayCalendar:
    """Answers whether a date is a holiday for a particular employee."""

    def __init__(self, session: Session):
        self.session = session

    def is_holiday(self, day: date, employee_id: Optional[int] = None) -> Optional[Holiday]:
        """
        Return the holiday applicable to ``employee_id`` on ``day``, if any.

        Company-wide holidays apply to everyone. Department holidays apply to
        employees of a targeted department and specific holidays to the listed
        employees. Without an employee only company-wide holidays count.
        """
        statement = select(Holiday).where(
            Holiday.holiday_date == day, Holiday.is_active == True  # noqa: E712
        )
        if employee_id is None:
            statement = statement.where(
                Holiday.applicable_to == HolidayApplicability.ALL.value
            )

        holidays = self.session.exec(statement).all()
        if not holidays:
            return None

        department = None
        if employee_id is not None:
            employee = self.session.get(EmployeeCache, employee_id)
            department = employee.department if employee else None

        for holiday in holidays:
            if holiday.applicable_to == HolidayApplicability.ALL.value:
                return holiday
            if (
                holiday.applicable_to == HolidayApplicability.DEPARTMENT.value
                and department is not None
                and department in (holiday.target_departments or [])
            ):
                return holiday
            if (
                holiday.applicable_to == HolidayApplicability.SPECIFIC.value
                and employee_id in (holiday.target_employees or [])
            ):
                return holiday

        logger.debug(f"No holiday on {day} applies to employee {employee_id}")
        return None
