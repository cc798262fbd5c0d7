"""
Shared fixtures.

The database is an in-memory SQLite database; tables are created and dropped
around every test that asks for ``db_session``.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["KAFKA_ENABLED"] = "false"
os.environ["RATE_LIMIT_BACKEND"] = "memory"

from datetime import time
from typing import Callable, Optional

import pytest
from sqlmodel import Session, SQLModel

import app.models  # noqa: F401
from app.core.database import engine
from app.core.errors import UploadError
from app.core.evidence import EvidenceStore
from app.core.holidays import HolidayCalendar
from app.core.office_hours import OfficeWindow
from app.models.attendance import Evidence
from app.models.employee import EmployeeCache


class FakeEvidenceStore(EvidenceStore):
    """Records uploads instead of storing them."""

    def __init__(self):
        self.uploads: list[str] = []
        self.fail = False
        self.before_return: Optional[Callable[[], None]] = None

    async def upload(self, content, filename, content_type=None):
        if self.fail:
            raise UploadError("Evidence upload failed, please retry")
        if self.before_return is not None:
            self.before_return()
        self.uploads.append(filename)
        return f"https://evidence.test/{filename}"


@pytest.fixture
def db_session():
    """Create a database session for testing."""
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def evidence_store():
    return FakeEvidenceStore()


@pytest.fixture
def photo():
    return Evidence(content=b"\xff\xd8\xff\xe0fake-jpeg", filename="selfie.jpg", content_type="image/jpeg")


@pytest.fixture
def office_window():
    return OfficeWindow(start=time(9, 30), end=time(18, 30))


@pytest.fixture
def holidays(db_session):
    return HolidayCalendar(db_session)


@pytest.fixture
def make_employee(db_session):
    """Factory adding an employee to the local cache."""

    def _make(
        employee_id: int = 1,
        email: Optional[str] = None,
        user_id: Optional[str] = None,
        department: Optional[str] = "Engineering",
        status: str = "active",
        first_name: str = "John",
        last_name: str = "Doe",
    ) -> EmployeeCache:
        employee = EmployeeCache(
            id=employee_id,
            user_id=user_id or f"user-{employee_id}",
            email=email or f"employee{employee_id}@company.com",
            first_name=first_name,
            last_name=last_name,
            full_name=f"{first_name} {last_name}",
            department=department,
            status=status,
        )
        db_session.add(employee)
        db_session.commit()
        db_session.refresh(employee)
        return employee

    return _make
