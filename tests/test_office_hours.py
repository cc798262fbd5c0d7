"""Tests for office window arithmetic."""

from datetime import date, datetime, time

import pytest

from app.core.office_hours import OfficeWindow, worked_minutes

MONDAY = date(2024, 3, 11)


def test_midpoint_is_half_way_through_the_window(office_window):
    """Test that the check-in cutoff is the middle of the office window."""
    # Act
    midpoint = office_window.midpoint_on(MONDAY)

    # Assert
    assert midpoint == datetime(2024, 3, 11, 14, 0)


def test_effective_checkout_is_clamped_to_office_end(office_window):
    """Test that checkouts after closing count as the office end."""
    # Act
    early = office_window.effective_checkout(MONDAY, datetime(2024, 3, 11, 17, 0))
    late = office_window.effective_checkout(MONDAY, datetime(2024, 3, 11, 21, 15))

    # Assert
    assert early == datetime(2024, 3, 11, 17, 0)
    assert late == datetime(2024, 3, 11, 18, 30)


def test_weekend_detection(office_window):
    """Test that Saturday and Sunday are rest days by default."""
    # Assert
    assert office_window.is_weekend(date(2024, 3, 16))
    assert office_window.is_weekend(date(2024, 3, 17))
    assert not office_window.is_weekend(MONDAY)


def test_present_threshold_is_inclusive(office_window):
    """Test that exactly the minimum presence counts as present."""
    # Assert
    assert office_window.present_verdict(270)
    assert not office_window.present_verdict(269)


def test_worked_minutes_floors_and_never_goes_negative():
    """Test whole-minute flooring of worked durations."""
    # Arrange
    check_in = datetime(2024, 3, 11, 9, 30, 0)

    # Act / Assert
    assert worked_minutes(check_in, datetime(2024, 3, 11, 14, 0, 59)) == 270
    assert worked_minutes(check_in, datetime(2024, 3, 11, 9, 0)) == 0


def test_window_must_end_after_it_starts():
    """Test that an inverted office window is rejected."""
    # Act / Assert
    with pytest.raises(ValueError):
        OfficeWindow(start=time(18, 0), end=time(9, 0))
