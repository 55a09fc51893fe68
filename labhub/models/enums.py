from enum import Enum


class Role(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    DEVELOPER = "DEVELOPER"
    ADMIN = "ADMIN"
    LAB_ASSISTANT = "LAB_ASSISTANT"
    LECTURER = "LECTURER"
    STUDENT = "STUDENT"


# Roles that ignore campus scoping entirely
SUPER_ROLES = frozenset({Role.SUPER_ADMIN, Role.DEVELOPER})
# Roles allowed to drive admin-gated lifecycle transitions
ADMIN_ROLES = frozenset({Role.ADMIN, Role.SUPER_ADMIN, Role.DEVELOPER})
# Roles allowed to create and edit incidents, equipment and maintenance records
STAFF_ROLES = frozenset({Role.ADMIN, Role.LAB_ASSISTANT, Role.SUPER_ADMIN, Role.DEVELOPER})


class EquipmentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    DAMAGED = "DAMAGED"
    MAINTENANCE = "MAINTENANCE"
    RETIRED = "RETIRED"


class IncidentStatus(str, Enum):
    OPEN = "OPEN"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    VERIFIED = "VERIFIED"
    CLOSED = "CLOSED"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ProblemScope(str, Enum):
    EQUIPMENT = "EQUIPMENT"
    LAB = "LAB"
    OTHER = "OTHER"


class MaintenanceStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    RETURNED = "RETURNED"
    COMPLETED = "COMPLETED"


class EquipmentOutcome(str, Enum):
    ACTIVE = "ACTIVE"
    DAMAGED = "DAMAGED"


class AuditEntityType(str, Enum):
    EQUIPMENT = "EQUIPMENT"
    INCIDENT = "INCIDENT"
    MAINTENANCE = "MAINTENANCE"


class AuditAction(str, Enum):
    STATUS_CHANGE = "STATUS_CHANGE"


class NotificationType(str, Enum):
    WARRANTY_ALERT = "WARRANTY_ALERT"
    INCIDENT_ESCALATION = "INCIDENT_ESCALATION"
    MAINTENANCE_OVERDUE = "MAINTENANCE_OVERDUE"
