"""
Employee directory for the Attendance & Leave Service.

Resolves authenticated principals to employees with a two-tier approach:
1. The local employee cache (synchronized from employee events)
2. The Employee Management Service over HTTP when the cache misses

It also provides read-time employee summaries so that attendance and leave
responses can show names and departments without ORM-level joins.
"""

from typing import Iterable, Optional

from sqlmodel import Session, col, select

from app.api.clients.employee_service import EmployeeServiceClient
from app.api.clients.employee_service import employee_service as http_client
from app.core.errors import NotFound
from app.core.logging import get_logger
from app.core.security import TokenData
from app.models.employee import ACTIVE_EMPLOYEE_STATUSES, EmployeeCache, EmployeeSummary

logger = get_logger(__name__)


class EmployeeDirectory:
    """Cache-first employee lookups with HTTP fallback."""

    def __init__(self, session: Session, client: EmployeeServiceClient = http_client):
        self.session = session
        self.client = client

    def _cached_for_principal(self, principal: TokenData) -> Optional[EmployeeCache]:
        employee = self.session.exec(
            select(EmployeeCache).where(EmployeeCache.user_id == principal.sub)
        ).first()
        if employee is None and principal.email:
            employee = self.session.exec(
                select(EmployeeCache).where(EmployeeCache.email == principal.email)
            ).first()
        return employee

    async def resolve(self, principal: TokenData) -> int:
        """
        Resolve a principal to an active employee id.

        Args:
            principal: Claims of the authenticated caller

        Returns:
            The employee id

        Raises:
            NotFound: if no active employee matches the principal
        """
        employee = self._cached_for_principal(principal)
        if employee is not None:
            if not employee.is_active:
                logger.info(
                    f"Employee {employee.id} found in cache but inactive (status: {employee.status})"
                )
                raise NotFound("Employee record not found")
            return employee.id

        if not principal.email:
            raise NotFound("Employee record not found")

        logger.info(f"Principal {principal.sub} not in cache, falling back to HTTP")
        data = await self.client.get_employee_by_email(principal.email)
        if not data or data.get("status", "active") not in ACTIVE_EMPLOYEE_STATUSES:
            logger.warning(f"No active employee found for {principal.email}")
            raise NotFound("Employee record not found")
        return int(data["id"])

    async def ensure_exists(self, employee_id: int) -> None:
        """
        Check that an employee id refers to an active employee.

        Raises:
            NotFound: if the employee is unknown or inactive
        """
        employee = self.session.get(EmployeeCache, employee_id)
        if employee is not None:
            if not employee.is_active:
                raise NotFound(f"Employee {employee_id} not found")
            return

        data = await self.client.get_employee(employee_id)
        if not data or data.get("status", "active") not in ACTIVE_EMPLOYEE_STATUSES:
            raise NotFound(f"Employee {employee_id} not found")

    def get_summaries(self, employee_ids: Iterable[int]) -> dict[int, EmployeeSummary]:
        """Summaries for the cached employees among ``employee_ids``."""
        ids = set(employee_ids)
        if not ids:
            return {}
        employees = self.session.exec(
            select(EmployeeCache).where(col(EmployeeCache.id).in_(ids))
        ).all()
        return {employee.id: EmployeeSummary.from_cache(employee) for employee in employees}

    def employee_ids_in_department(self, department: str) -> list[int]:
        employees = self.session.exec(
            select(EmployeeCache).where(EmployeeCache.department == department)
        ).all()
        return [employee.id for employee in employees]
