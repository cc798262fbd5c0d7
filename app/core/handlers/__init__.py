"""
Kafka event handlers for the Attendance & Leave Service.

Handlers consume events from other services and update local state.
"""

from .employee_handlers import register_employee_handlers

__all__ = ["register_employee_handlers"]
