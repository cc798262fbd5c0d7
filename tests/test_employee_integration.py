"""
Integration tests for employee data synchronization.

Tests the employee cache synchronization via Kafka events and
the directory's cache-first resolution of principals.
"""

import pytest
from sqlmodel import select

from app.core.employee_service import EmployeeDirectory
from app.core.errors import NotFound
from app.core.handlers.employee_handlers import (
    handle_employee_activated,
    handle_employee_created,
    handle_employee_deleted,
    handle_employee_suspended,
    handle_employee_terminated,
    handle_employee_updated,
    register_employee_handlers,
)
from app.core.kafka import KafkaConsumer
from app.core.security import TokenData
from app.models.employee import EmployeeCache


class FakeEmployeeClient:
    """Stands in for the Employee Management Service."""

    def __init__(self, employees=None):
        self.employees = employees or {}
        self.calls = []

    async def get_employee(self, employee_id):
        self.calls.append(("id", employee_id))
        return self.employees.get(employee_id)

    async def get_employee_by_email(self, email):
        self.calls.append(("email", email))
        return next(
            (data for data in self.employees.values() if data["email"] == email), None
        )


CREATED_EVENT = {
    "event_type": "employee.created",
    "data": {
        "employee_id": 1,
        "user_id": 100,
        "email": "john.doe@company.com",
        "first_name": "John",
        "last_name": "Doe",
        "role": "employee",
        "job_title": "Software Engineer",
        "department": "Engineering",
        "team": "Backend",
        "manager_id": 5,
        "employment_type": "permanent",
        "joining_date": "2024-01-15",
    },
}


def test_handle_employee_created(db_session):
    """Test that employee created event populates the cache."""
    # Act
    handle_employee_created(CREATED_EVENT)

    # Assert
    employee = db_session.get(EmployeeCache, 1)
    assert employee is not None
    assert employee.user_id == "100"
    assert employee.full_name == "John Doe"
    assert employee.department == "Engineering"
    assert employee.joining_date.year == 2024
    assert employee.status == "active"


def test_employee_created_event_idempotency(db_session):
    """Test that duplicate employee created events don't cause errors."""
    # Act - Process same event twice
    handle_employee_created(CREATED_EVENT)
    handle_employee_created(CREATED_EVENT)

    # Assert - Should still have only one employee
    employees = db_session.exec(select(EmployeeCache)).all()
    assert len(employees) == 1


def test_handle_employee_updated(db_session, make_employee):
    """Test that employee updated event updates the cache."""
    # Arrange
    employee = make_employee(1, department="Engineering")

    # Act
    handle_employee_updated(
        {
            "event_type": "employee.updated",
            "data": {
                "employee_id": 1,
                "updated_fields": {"last_name": "Smith", "department": "Architecture"},
            },
        }
    )

    # Assert
    db_session.refresh(employee)
    assert employee.department == "Architecture"
    assert employee.full_name == "John Smith"


def test_update_for_unknown_employee_creates_entry(db_session):
    """Test recovery from a missed creation event."""
    # Act
    handle_employee_updated(
        {
            "event_type": "employee.updated",
            "data": {
                "employee_id": 9,
                "email": "late@company.com",
                "first_name": "Late",
                "last_name": "Comer",
            },
        }
    )

    # Assert
    employee = db_session.get(EmployeeCache, 9)
    assert employee is not None
    assert employee.full_name == "Late Comer"


@pytest.mark.parametrize(
    "handler,expected",
    [
        (handle_employee_deleted, "deleted"),
        (handle_employee_terminated, "terminated"),
        (handle_employee_suspended, "suspended"),
    ],
)
def test_status_events_deactivate_employee(db_session, make_employee, handler, expected):
    """Test that lifecycle events update the cached status."""
    # Arrange
    employee = make_employee(1)

    # Act
    handler({"data": {"employee_id": 1}})

    # Assert
    db_session.refresh(employee)
    assert employee.status == expected
    assert not employee.is_active


def test_handle_employee_activated(db_session, make_employee):
    """Test reactivation of a suspended employee."""
    # Arrange
    employee = make_employee(1, status="suspended")

    # Act
    handle_employee_activated({"data": {"employee_id": 1}})

    # Assert
    db_session.refresh(employee)
    assert employee.status == "active"


def test_register_handlers_skipped_when_kafka_disabled(monkeypatch):
    """Test that nothing subscribes while Kafka is disabled."""
    # Arrange
    monkeypatch.setattr(KafkaConsumer, "_handlers", {})

    # Act
    register_employee_handlers()

    # Assert
    assert KafkaConsumer._handlers == {}


def test_consumer_dispatches_to_registered_handler(db_session, monkeypatch):
    """Test that consumed messages reach the cache handlers."""
    # Arrange
    monkeypatch.setattr(KafkaConsumer, "_handlers", {})
    KafkaConsumer.register_handler("employee-created", handle_employee_created)

    # Act
    KafkaConsumer.dispatch("employee-created", CREATED_EVENT)

    # Assert
    assert db_session.get(EmployeeCache, 1) is not None


@pytest.mark.asyncio
async def test_resolve_principal_from_cache(db_session, make_employee):
    """Test resolution by identity subject, then by email."""
    # Arrange
    make_employee(1, user_id="sub-1", email="john.doe@company.com")
    client = FakeEmployeeClient()
    directory = EmployeeDirectory(db_session, client=client)

    # Act
    by_subject = await directory.resolve(TokenData(sub="sub-1"))
    by_email = await directory.resolve(TokenData(sub="other", email="john.doe@company.com"))

    # Assert
    assert by_subject == 1
    assert by_email == 1
    assert client.calls == []


@pytest.mark.asyncio
async def test_resolve_inactive_employee_is_not_found(db_session, make_employee):
    """Test that inactive employees are not resolved."""
    # Arrange
    make_employee(1, user_id="sub-1", status="terminated")
    directory = EmployeeDirectory(db_session, client=FakeEmployeeClient())

    # Act / Assert
    with pytest.raises(NotFound):
        await directory.resolve(TokenData(sub="sub-1"))


@pytest.mark.asyncio
async def test_resolve_falls_back_to_employee_service(db_session):
    """Test the HTTP fallback on a cache miss."""
    # Arrange
    client = FakeEmployeeClient(
        {5: {"id": 5, "email": "new@company.com", "status": "active"}}
    )
    directory = EmployeeDirectory(db_session, client=client)

    # Act
    employee_id = await directory.resolve(TokenData(sub="sub-5", email="new@company.com"))

    # Assert
    assert employee_id == 5
    assert client.calls == [("email", "new@company.com")]
    with pytest.raises(NotFound):
        await directory.resolve(TokenData(sub="sub-6", email="ghost@company.com"))


@pytest.mark.asyncio
async def test_ensure_exists(db_session, make_employee):
    """Test existence checks against cache and service."""
    # Arrange
    make_employee(1)
    directory = EmployeeDirectory(
        db_session, client=FakeEmployeeClient({2: {"id": 2, "email": "b@company.com"}})
    )

    # Act / Assert
    await directory.ensure_exists(1)
    await directory.ensure_exists(2)
    with pytest.raises(NotFound):
        await directory.ensure_exists(3)


def test_summaries_and_department_lookup(db_session, make_employee):
    """Test read-time employee hydration helpers."""
    # Arrange
    make_employee(1, department="Engineering")
    make_employee(2, department="Sales", first_name="Jane", last_name="Roe")
    directory = EmployeeDirectory(db_session, client=FakeEmployeeClient())

    # Act
    summaries = directory.get_summaries([1, 2, 3])

    # Assert
    assert set(summaries) == {1, 2}
    assert summaries[2].full_name == "Jane Roe"
    assert summaries[2].department == "Sales"
    assert directory.employee_ids_in_department("Engineering") == [1]
