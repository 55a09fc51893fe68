"""Shared setup for the test modules: in-memory database and row factories."""
import unittest
from datetime import datetime, timedelta
from itertools import count

from labhub.auth.security import get_password_hash
from labhub.config import Settings
from labhub.db import Base, build_engine, build_session_factory
from labhub.models.enums import (
    EquipmentStatus,
    IncidentStatus,
    MaintenanceStatus,
    Role,
    Severity,
)
from labhub.models.models import Campus, Equipment, Incident, Lab, Maintenance, Notification, User, utcnow
from labhub.services.permissions import Principal


PASSWORD = "correct-horse-battery"
_seq = count(1)


def make_settings(**overrides) -> Settings:
    values = {
        "DATABASE_URL": "sqlite://",
        "AUTO_CREATE_DB": True,
        "JWT_SECRET": "test-secret",
        "RATE_LIMIT": "10000/minute",
        "METRICS_ENABLED": False,
        "AUDIT_INTEGRITY_SECRET": "audit-secret",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def principal_of(user: User) -> Principal:
    return Principal(id=user.id, role=Role(user.role), campus_id=user.campus_id)


class Factory:
    """Creates committed rows on a session."""

    def __init__(self, db):
        self.db = db

    def _save(self, row):
        self.db.add(row)
        self.db.commit()
        return row

    def campus(self, code=None):
        n = next(_seq)
        return self._save(Campus(name=f"Campus {n}", code=code or f"C{n}"))

    def lab(self, campus):
        n = next(_seq)
        return self._save(Lab(name=f"Lab {n}", code=f"L{n}", campus_id=campus.id))

    def user(self, role=Role.STUDENT, campus=None, email=None):
        n = next(_seq)
        return self._save(
            User(
                name=f"User {n}",
                email=email or f"user{n}@campus.edu",
                password_hash=get_password_hash(PASSWORD),
                role=Role(role).value,
                campus_id=campus.id if campus else None,
            )
        )

    def equipment(self, lab, status=EquipmentStatus.ACTIVE, **kwargs):
        n = next(_seq)
        values = dict(code=f"EQ-{n}", name=f"Microscope {n}", category="OPTICS")
        values.update(kwargs)
        return self._save(Equipment(lab_id=lab.id, campus_id=lab.campus_id, status=EquipmentStatus(status).value, **values))

    def incident(self, campus, reporter, status=IncidentStatus.OPEN, severity=Severity.MEDIUM, **kwargs):
        values = dict(category="Hardware", description="Stage does not move")
        values.update(kwargs)
        return self._save(
            Incident(
                campus_id=campus.id,
                reported_by_id=reporter.id,
                status=IncidentStatus(status).value,
                severity=Severity(severity).value,
                **values,
            )
        )

    def maintenance(self, incident, equipment, creator, status=MaintenanceStatus.PENDING, **kwargs):
        values = dict(title="Replace stage motor")
        values.update(kwargs)
        return self._save(
            Maintenance(
                incident_id=incident.id,
                equipment_id=equipment.id,
                campus_id=equipment.campus_id,
                created_by_id=creator.id,
                status=MaintenanceStatus(status).value,
                **values,
            )
        )

    def notification(self, campus, entity_id, type, is_read=False, message="alert"):
        return self._save(
            Notification(campus_id=campus.id, entity_id=entity_id, type=type.value, is_read=is_read, message=message)
        )


class DatabaseTestCase(unittest.TestCase):
    """Fresh in-memory database per test."""

    def setUp(self):
        self.settings = make_settings()
        self.engine = build_engine(self.settings)
        Base.metadata.create_all(bind=self.engine)
        self.db = build_session_factory(self.engine)()
        self.make = Factory(self.db)

    def tearDown(self):
        self.db.close()
        Base.metadata.drop_all(bind=self.engine)
        self.engine.dispose()

    def reload(self, model, pk):
        self.db.expire_all()
        return self.db.get(model, pk)


def days_ago(days: float) -> datetime:
    return utcnow() - timedelta(days=days)
