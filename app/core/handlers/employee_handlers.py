"""
Employee event handlers for the Attendance & Leave Service.

These handlers consume employee lifecycle events from the Employee Management
Service and keep the local ``employee_cache`` table in step, so principals can
be resolved and responses hydrated without calling the service.
"""

from datetime import datetime
from typing import Any, Optional

from sqlmodel import Session

from app.core.config import settings
from app.core.database import engine
from app.core.kafka import KafkaConsumer
from app.core.logging import get_logger
from app.core.topics import KafkaTopics
from app.models.employee import EmployeeCache

logger = get_logger(__name__)

# Event fields copied verbatim onto the cache row
_SYNCED_FIELDS = (
    "email",
    "first_name",
    "last_name",
    "role",
    "job_title",
    "department",
    "team",
    "manager_id",
    "employment_type",
    "status",
)


def _parse_date(value: Any) -> Optional[datetime]:
    """Parse ISO datetimes and plain ``YYYY-MM-DD`` dates from event data."""
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            try:
                return datetime.strptime(value, "%Y-%m-%d")
            except ValueError:
                logger.warning(f"Could not parse date: {value}")
    return None


def _apply_fields(employee: EmployeeCache, fields: dict[str, Any]) -> None:
    for name in _SYNCED_FIELDS:
        if name in fields and fields[name] is not None:
            setattr(employee, name, fields[name])
    if "user_id" in fields and fields["user_id"] is not None:
        employee.user_id = str(fields["user_id"])
    if "joining_date" in fields:
        employee.joining_date = _parse_date(fields["joining_date"])
    employee.full_name = f"{employee.first_name} {employee.last_name}".strip()
    employee.updated_at = datetime.utcnow()
    employee.synced_at = datetime.utcnow()


def _upsert(session: Session, employee_id: int, fields: dict[str, Any]) -> Optional[EmployeeCache]:
    employee = session.get(EmployeeCache, employee_id)
    if employee is None:
        if not fields.get("email"):
            logger.warning(f"Cannot cache employee {employee_id} without an email")
            return None
        employee = EmployeeCache(
            id=employee_id,
            email=fields["email"],
            first_name=fields.get("first_name") or "",
            last_name=fields.get("last_name") or "",
            full_name="",
        )
    _apply_fields(employee, fields)
    session.add(employee)
    session.commit()
    return employee


def handle_employee_created(event_data: dict[str, Any]):
    """Create (or refresh) the cache entry for a new employee."""
    try:
        data = event_data.get("data", {})
        employee_id = data.get("employee_id")
        if not employee_id:
            logger.error("Employee created event missing employee_id")
            return

        logger.info(f"Processing employee.created event for employee {employee_id}")
        with Session(engine) as session:
            if _upsert(session, employee_id, {**data, "status": "active"}):
                logger.info(f"Cached employee {employee_id} ({data.get('email')})")
    except Exception as e:
        logger.error(f"Error handling employee.created event: {e}", exc_info=True)


def handle_employee_updated(event_data: dict[str, Any]):
    """
    Apply changed fields to the cache.

    An update for an employee we never saw creates the entry, since the
    creation event may have been missed.
    """
    try:
        data = event_data.get("data", {})
        employee_id = data.get("employee_id")
        if not employee_id:
            logger.error("Employee updated event missing employee_id")
            return

        logger.info(f"Processing employee.updated event for employee {employee_id}")
        fields = {
            key: value for key, value in data.items() if key not in ("employee_id", "updated_fields")
        }
        fields.update(data.get("updated_fields", {}))
        with Session(engine) as session:
            if _upsert(session, employee_id, fields):
                logger.info(f"Updated employee cache for {employee_id}")
    except Exception as e:
        logger.error(f"Error handling employee.updated event: {e}", exc_info=True)


def _set_status(event_data: dict[str, Any], status: str) -> None:
    data = event_data.get("data", {})
    employee_id = data.get("employee_id")
    if not employee_id:
        logger.error(f"Employee {status} event missing employee_id")
        return

    with Session(engine) as session:
        employee = session.get(EmployeeCache, employee_id)
        if employee is None:
            logger.warning(f"Employee {employee_id} not found in cache")
            return
        # Rows are kept so attendance and leave history still resolve names
        employee.status = status
        employee.updated_at = datetime.utcnow()
        employee.synced_at = datetime.utcnow()
        session.add(employee)
        session.commit()
        logger.info(f"Marked employee {employee_id} as {status} in cache")


def handle_employee_deleted(event_data: dict[str, Any]):
    try:
        _set_status(event_data, "deleted")
    except Exception as e:
        logger.error(f"Error handling employee.deleted event: {e}", exc_info=True)


def handle_employee_terminated(event_data: dict[str, Any]):
    try:
        _set_status(event_data, "terminated")
    except Exception as e:
        logger.error(f"Error handling employee.terminated event: {e}", exc_info=True)


def handle_employee_suspended(event_data: dict[str, Any]):
    try:
        _set_status(event_data, "suspended")
    except Exception as e:
        logger.error(f"Error handling employee.suspended event: {e}", exc_info=True)


def handle_employee_activated(event_data: dict[str, Any]):
    try:
        _set_status(event_data, "active")
    except Exception as e:
        logger.error(f"Error handling employee.activated event: {e}", exc_info=True)


def register_employee_handlers():
    """Subscribe the employee cache to the employee lifecycle topics."""
    if not settings.KAFKA_ENABLED:
        logger.info("Kafka is disabled, skipping employee handler registration")
        return

    handlers = {
        KafkaTopics.EMPLOYEE_CREATED: handle_employee_created,
        KafkaTopics.EMPLOYEE_UPDATED: handle_employee_updated,
        KafkaTopics.EMPLOYEE_DELETED: handle_employee_deleted,
        KafkaTopics.EMPLOYEE_TERMINATED: handle_employee_terminated,
        KafkaTopics.EMPLOYEE_SUSPENDED: handle_employee_suspended,
        KafkaTopics.EMPLOYEE_ACTIVATED: handle_employee_activated,
    }
    for topic, handler in handlers.items():
        KafkaConsumer.register_handler(topic, handler)

    logger.info(f"Registered handlers for topics: {', '.join(handlers)}")
