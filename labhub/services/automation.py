"""
Automation sweeps: warranty expiry, incident escalation, overdue maintenance.

Every sweep is idempotent. At most one unread notification exists per
(campus_id, entity_id, type); the check-then-insert runs in one transaction
and each insert sits in its own SAVEPOINT so a concurrent sweep that won the
race surfaces as an IntegrityError on the partial unique index and is skipped.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Set, Tuple

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.enums import IncidentStatus, MaintenanceStatus, NotificationType, Severity
from ..models.models import Equipment, Incident, Maintenance, Notification, utcnow
from .dispatch import AlertPayload, DispatchQueue


logger = structlog.get_logger(__name__)

WARRANTY_WINDOW = timedelta(days=30)
ESCALATION_THRESHOLD = timedelta(hours=72)
OVERDUE_THRESHOLD = timedelta(days=7)

ESCALATION_SEVERITIES = (Severity.HIGH.value, Severity.CRITICAL.value)
ESCALATION_STATUSES = (
    IncidentStatus.OPEN.value,
    IncidentStatus.ASSIGNED.value,
    IncidentStatus.IN_PROGRESS.value,
)


@dataclass(frozen=True)
class Candidate:
    campus_id: uuid.UUID
    entity_id: uuid.UUID
    message: str


@dataclass(frozen=True)
class SweepResult:
    processed: int
    created: int

    def to_dict(self) -> dict:
        return {"processed": self.processed, "created": self.created}


def _existing_unread_keys(
    db: Session, type: NotificationType, candidates: List[Candidate]
) -> Set[Tuple[uuid.UUID, uuid.UUID]]:
    entity_ids = list({c.entity_id for c in candidates})
    campus_ids = list({c.campus_id for c in candidates})
    rows = (
        db.query(Notification.campus_id, Notification.entity_id)
        .filter(
            Notification.type == type.value,
            Notification.is_read.is_(False),
            Notification.entity_id.in_(entity_ids),
            Notification.campus_id.in_(campus_ids),
        )
        .all()
    )
    return {(row.campus_id, row.entity_id) for row in rows}


def create_notifications_if_not_exists(
    db: Session, type: NotificationType, candidates: List[Candidate]
) -> List[Notification]:
    """
    Insert one unread notification per candidate key that has none yet.

    Returns the rows actually inserted. Commits on success, rolls back and
    re-raises on any other failure.
    """
    if not candidates:
        return []

    created: List[Notification] = []
    try:
        seen = _existing_unread_keys(db, type, candidates)
        for candidate in candidates:
            key = (candidate.campus_id, candidate.entity_id)
            if key in seen:
                continue
            seen.add(key)
            notification = Notification(
                campus_id=candidate.campus_id,
                type=type.value,
                entity_id=candidate.entity_id,
                message=candidate.message,
                is_read=False,
            )
            try:
                with db.begin_nested():
                    db.add(notification)
                    db.flush()
            except IntegrityError:
                logger.info(
                    "notification_already_exists",
                    type=type.value,
                    campus_id=str(candidate.campus_id),
                    entity_id=str(candidate.entity_id),
                )
                continue
            created.append(notification)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return created


class AutomationService:
    """Runs the scheduled sweeps and hands new alerts to the dispatch queue."""

    def __init__(self, queue: Optional[DispatchQueue] = None, clock: Callable[[], datetime] = utcnow):
        self.queue = queue
        self.clock = clock

    def _finish(self, db: Session, type: NotificationType, candidates: List[Candidate]) -> SweepResult:
        created = create_notifications_if_not_exists(db, type, candidates)
        # Only after commit: delivery never holds the transaction open
        if self.queue is not None and created:
            self.queue.submit([
                AlertPayload(
                    type=type.value,
                    campus_id=str(n.campus_id),
                    entity_id=str(n.entity_id),
                    message=n.message,
                )
                for n in created
            ])
        result = SweepResult(processed=len(candidates), created=len(created))
        logger.info("automation_task_completed", type=type.value, processed=result.processed, created=result.created)
        return result

    def run_warranty_check(self, db: Session) -> SweepResult:
        now = self.clock()
        equipments = (
            db.query(Equipment)
            .filter(
                Equipment.is_deleted.is_(False),
                Equipment.warranty_end_date >= now,
                Equipment.warranty_end_date <= now + WARRANTY_WINDOW,
            )
            .all()
        )
        candidates = [
            Candidate(
                campus_id=e.campus_id,
                entity_id=e.id,
                message=f"Warranty for {e.code} ({e.name}) expires on {e.warranty_end_date.strftime('%Y-%m-%d')}",
            )
            for e in equipments
        ]
        return self._finish(db, NotificationType.WARRANTY_ALERT, candidates)

    def run_incident_escalation_check(self, db: Session) -> SweepResult:
        now = self.clock()
        incidents = (
            db.query(Incident)
            .filter(
                Incident.is_deleted.is_(False),
                Incident.severity.in_(ESCALATION_SEVERITIES),
                Incident.status.in_(ESCALATION_STATUSES),
                Incident.created_at <= now - ESCALATION_THRESHOLD,
            )
            .all()
        )
        candidates = []
        for incident in incidents:
            age_hours = int((now - incident.created_at).total_seconds() // 3600)
            candidates.append(
                Candidate(
                    campus_id=incident.campus_id,
                    entity_id=incident.id,
                    message=f'Escalation: {incident.severity} incident "{incident.category}" has been open for {age_hours}h',
                )
            )
        return self._finish(db, NotificationType.INCIDENT_ESCALATION, candidates)

    def run_maintenance_overdue_check(self, db: Session) -> SweepResult:
        now = self.clock()
        records = (
            db.query(Maintenance)
            .filter(
                Maintenance.is_deleted.is_(False),
                Maintenance.status == MaintenanceStatus.SENT.value,
                Maintenance.sent_to_vendor_at <= now - OVERDUE_THRESHOLD,
            )
            .all()
        )
        candidates = [
            Candidate(
                campus_id=m.campus_id,
                entity_id=m.id,
                message=f'Maintenance overdue: "{m.title}" has stayed in SENT for {(now - m.sent_to_vendor_at).days} days',
            )
            for m in records
        ]
        return self._finish(db, NotificationType.MAINTENANCE_OVERDUE, candidates)
