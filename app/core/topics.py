"""
Kafka topic definitions for the Attendance & Leave Service.

Topic naming follows the pattern: <domain>-<event-type>
"""


class KafkaTopics:
    """Central registry of the Kafka topics this service produces and consumes."""

    # Attendance lifecycle
    ATTENDANCE_CHECKIN = "attendance-checkin"
    ATTENDANCE_CHECKOUT = "attendance-checkout"
    ATTENDANCE_AUTO_STOPPED = "attendance-auto-stopped"
    ATTENDANCE_EVIDENCE_PATCHED = "attendance-evidence-patched"

    # Leave lifecycle
    LEAVE_APPLIED = "leave-applied"
    LEAVE_UPDATED = "leave-updated"
    LEAVE_REVIEWED = "leave-reviewed"
    LEAVE_CANCELLED = "leave-cancelled"

    # Audit trail
    AUDIT_ACTION = "audit-action"

    # Consumed from the Employee Management Service
    EMPLOYEE_CREATED = "employee-created"
    EMPLOYEE_UPDATED = "employee-updated"
    EMPLOYEE_DELETED = "employee-deleted"
    EMPLOYEE_TERMINATED = "employee-terminated"
    EMPLOYEE_SUSPENDED = "employee-suspended"
    EMPLOYEE_ACTIVATED = "employee-activated"

