"""Tests for holiday applicability."""

from datetime import date

from app.models.holiday import Holiday, HolidayApplicability

DAY = date(2024, 3, 25)


def _add_holiday(db_session, **kwargs) -> Holiday:
    holiday = Holiday(name=kwargs.pop("name", "Holi"), holiday_date=kwargs.pop("holiday_date", DAY), **kwargs)
    db_session.add(holiday)
    db_session.commit()
    db_session.refresh(holiday)
    return holiday


def test_company_wide_holiday_applies_to_everyone(db_session, holidays):
    """Test that an All holiday applies with or without an employee."""
    # Arrange
    _add_holiday(db_session)

    # Act / Assert
    assert holidays.is_holiday(DAY).name == "Holi"
    assert holidays.is_holiday(DAY, 42).name == "Holi"
    assert holidays.is_holiday(date(2024, 3, 26), 42) is None


def test_department_holiday_applies_to_department_members(db_session, holidays, make_employee):
    """Test department-restricted holidays."""
    # Arrange
    make_employee(1, department="Engineering")
    make_employee(2, department="Sales")
    _add_holiday(
        db_session,
        name="Hack Day",
        applicable_to=HolidayApplicability.DEPARTMENT.value,
        target_departments=["Engineering"],
    )

    # Act / Assert
    assert holidays.is_holiday(DAY, 1).name == "Hack Day"
    assert holidays.is_holiday(DAY, 2) is None
    assert holidays.is_holiday(DAY) is None


def test_specific_holiday_applies_to_listed_employees(db_session, holidays):
    """Test holidays granted to named employees."""
    # Arrange
    _add_holiday(
        db_session,
        name="Floating",
        applicable_to=HolidayApplicability.SPECIFIC.value,
        target_employees=[7],
    )

    # Act / Assert
    assert holidays.is_holiday(DAY, 7).name == "Floating"
    assert holidays.is_holiday(DAY, 8) is None


def test_inactive_holiday_is_ignored(db_session, holidays):
    """Test that deactivated holidays do not count."""
    # Arrange
    _add_holiday(db_session, is_active=False)

    # Act / Assert
    assert holidays.is_holiday(DAY, 1) is None
