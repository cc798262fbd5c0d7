"""
HTTP client for the Employee Management Service.

Used as the fallback path of the employee directory when an employee is not
yet present in the local cache.
"""

from typing import Optional
from urllib.parse import quote

import httpx

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


class EmployeeServiceClient:
    """
    Client for the internal (service-to-service) employee endpoints.

    Lookups return ``None`` when the employee is unknown or the service is
    unreachable; callers decide how to surface that.
    """

    def __init__(self, base_url: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def _get(self, path: str) -> Optional[dict]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(f"{self.base_url}{path}")
        except httpx.RequestError as e:
            logger.error(f"Error calling employee service {path}: {e}")
            return None

        if response.status_code == 200:
            return response.json()
        if response.status_code == 404:
            logger.info(f"Employee service has no record for {path}")
        else:
            logger.warning(
                f"Employee service call {path} failed (status: {response.status_code})"
            )
        return None

    async def get_employee(self, employee_id: int) -> Optional[dict]:
        """Retrieve employee details by id."""
        return await self._get(f"/api/v1/employees/internal/{employee_id}")

    async def get_employee_by_email(self, email: str) -> Optional[dict]:
        """Retrieve employee details by email address."""
        return await self._get(f"/api/v1/employees/internal/by-email/{quote(email)}")


employee_service = EmployeeServiceClient(
    base_url=settings.EMPLOYEE_SERVICE_URL,
    timeout=settings.EMPLOYEE_SERVICE_TIMEOUT,
)
