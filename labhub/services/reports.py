"""
Campus reports: incident summary, equipment health, maintenance cost and the
CAPA (corrective and preventive action) export.

Every function takes an already-scoped campus id; None means all campuses.
"""
import csv
import io
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.enums import EquipmentStatus, IncidentStatus
from ..models.models import Campus, Equipment, Incident, Maintenance, utcnow


AGING_BUCKETS = (("0-24h", 24), ("24-72h", 72), ("3-7d", 168), (">7d", None))
OPEN_STATUSES = (IncidentStatus.OPEN.value, IncidentStatus.ASSIGNED.value, IncidentStatus.IN_PROGRESS.value)
WARRANTY_HORIZON = timedelta(days=30)
CAPA_COLUMNS = (
    "incident_id",
    "severity",
    "root_cause",
    "corrective_action",
    "preventive_action",
    "resolved_at",
    "verified_at",
)


def aging_category(open_hours: float) -> str:
    for label, limit in AGING_BUCKETS:
        if limit is None or open_hours < limit:
            return label
    return AGING_BUCKETS[-1][0]


def _hours(delta: timedelta) -> float:
    return round(delta.total_seconds() / 3600, 2)


def _count_by(db: Session, column, *criteria) -> Dict[str, int]:
    rows = db.query(column, func.count()).filter(*criteria).group_by(column).all()
    return {key: int(total) for key, total in rows}


def incident_summary(db: Session, campus_id: Optional[uuid.UUID] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    criteria = [Incident.is_deleted.is_(False)]
    if campus_id:
        criteria.append(Incident.campus_id == campus_id)

    by_status = _count_by(db, Incident.status, *criteria)
    by_severity = _count_by(db, Incident.severity, *criteria)
    by_scope = _count_by(db, Incident.problem_scope, *criteria)

    open_rows = (
        db.query(Incident.id, Incident.created_at)
        .filter(*criteria, Incident.status.in_(OPEN_STATUSES))
        .order_by(Incident.created_at)
        .all()
    )
    details = []
    buckets = {label: 0 for label, _ in AGING_BUCKETS}
    for incident_id, created_at in open_rows:
        open_hours = _hours(now - created_at)
        category = aging_category(open_hours)
        buckets[category] += 1
        details.append({"incident_id": incident_id, "open_hours": open_hours, "aging_category": category})

    return {
        "total_incidents": sum(by_status.values()),
        "by_status": {status.value: by_status.get(status.value, 0) for status in IncidentStatus},
        "by_severity": [{"severity": key, "count": total} for key, total in sorted(by_severity.items())],
        "by_problem_scope": [{"problem_scope": key, "count": total} for key, total in sorted(by_scope.items())],
        "aging": {
            "by_category": [{"aging_category": label, "count": buckets[label]} for label, _ in AGING_BUCKETS],
            "details": details,
        },
    }


def equipment_health(db: Session, campus_id: Optional[uuid.UUID] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    criteria = [Equipment.is_deleted.is_(False)]
    if campus_id:
        criteria.append(Equipment.campus_id == campus_id)

    by_status = _count_by(db, Equipment.status, *criteria)
    expired = db.query(func.count(Equipment.id)).filter(*criteria, Equipment.warranty_end_date < now).scalar() or 0
    expiring = (
        db.query(func.count(Equipment.id))
        .filter(
            *criteria,
            Equipment.warranty_end_date >= now,
            Equipment.warranty_end_date <= now + WARRANTY_HORIZON,
        )
        .scalar()
        or 0
    )
    return {
        "total_equipment": sum(by_status.values()),
        "by_status": {status.value: by_status.get(status.value, 0) for status in EquipmentStatus},
        "warranty_expired": int(expired),
        "warranty_expiring_within_30_days": int(expiring),
    }


def _mean_hours(spans: List[timedelta]) -> float:
    if not spans:
        return 0.0
    return _hours(sum(spans, timedelta()) / len(spans))


def maintenance_cost_summary(db: Session, campus_id: Optional[uuid.UUID] = None) -> Dict[str, Any]:
    """
    Vendor cost totals per campus and per equipment, with MTTR.

    MTTR (mean time to repair) is the average time between SENT and RETURNED,
    over records that have both timestamps.
    """
    criteria = [Maintenance.is_deleted.is_(False)]
    if campus_id:
        criteria.append(Maintenance.campus_id == campus_id)

    per_campus = (
        db.query(Campus.id, Campus.name, Campus.code, func.coalesce(func.sum(Maintenance.cost), 0))
        .select_from(Maintenance)
        .join(Campus, Campus.id == Maintenance.campus_id)
        .filter(*criteria)
        .group_by(Campus.id, Campus.name, Campus.code)
        .order_by(Campus.code)
        .all()
    )
    per_equipment = (
        db.query(Equipment.id, Equipment.name, Equipment.code, func.coalesce(func.sum(Maintenance.cost), 0))
        .select_from(Maintenance)
        .join(Equipment, Equipment.id == Maintenance.equipment_id)
        .filter(*criteria)
        .group_by(Equipment.id, Equipment.name, Equipment.code)
        .order_by(Equipment.code)
        .all()
    )

    # Interval arithmetic differs per backend, so repair spans are averaged here
    repairs = (
        db.query(Maintenance.campus_id, Maintenance.sent_to_vendor_at, Maintenance.returned_from_vendor_at)
        .filter(
            *criteria,
            Maintenance.sent_to_vendor_at.isnot(None),
            Maintenance.returned_from_vendor_at.isnot(None),
        )
        .all()
    )
    spans_by_campus: Dict[uuid.UUID, List[timedelta]] = {}
    for repair_campus_id, sent_at, returned_at in repairs:
        spans_by_campus.setdefault(repair_campus_id, []).append(returned_at - sent_at)

    return {
        "total_cost_per_campus": [
            {
                "campus_id": row_id,
                "campus_name": name,
                "campus_code": code,
                "total_cost": float(total),
                "mttr_hours": _mean_hours(spans_by_campus.get(row_id, [])),
            }
            for row_id, name, code, total in per_campus
        ],
        "total_cost_per_equipment": [
            {"equipment_id": row_id, "equipment_name": name, "equipment_code": code, "total_cost": float(total)}
            for row_id, name, code, total in per_equipment
        ],
        "mttr_hours": _mean_hours([span for spans in spans_by_campus.values() for span in spans]),
    }


def capa_export_rows(db: Session, campus_id: Optional[uuid.UUID] = None) -> List[Dict[str, str]]:
    query = db.query(Incident).filter(Incident.is_deleted.is_(False))
    if campus_id:
        query = query.filter(Incident.campus_id == campus_id)
    rows = []
    for incident in query.order_by(Incident.created_at.desc()).all():
        rows.append({
            "incident_id": str(incident.id),
            "severity": incident.severity,
            "root_cause": incident.root_cause or "",
            "corrective_action": incident.corrective_action or "",
            "preventive_action": incident.preventive_action or "",
            "resolved_at": incident.resolved_at.isoformat() if incident.resolved_at else "",
            "verified_at": incident.verified_at.isoformat() if incident.verified_at else "",
        })
    return rows


def capa_csv(rows: List[Dict[str, str]]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CAPA_COLUMNS, lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue()
