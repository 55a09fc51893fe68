import unittest
import uuid

from labhub.models.enums import AuditEntityType, Role
from labhub.models.models import AuditLog, Equipment
from labhub.services import campuses, equipment, users
from labhub.services.errors import (
    AccessDenied,
    Conflict,
    CrossCampusReference,
    Forbidden,
    InvalidTransition,
    InvalidValue,
    NotFound,
)

from support import DatabaseTestCase, principal_of


class TestEquipment(DatabaseTestCase):

    def setUp(self):
        super().setUp()
        self.campus = self.make.campus()
        self.lab = self.make.lab(self.campus)
        self.admin = self.make.user(Role.ADMIN, self.campus)

    def test_campus_comes_from_lab(self):
        row = equipment.create_equipment(
            self.db, principal_of(self.admin), code="SPM-1", name="Spectrometer", category="ANALYSIS", lab_id=self.lab.id
        )
        self.assertEqual(row.campus_id, self.campus.id)
        self.assertEqual(row.status, "ACTIVE")

    def test_duplicate_code_in_campus_conflicts(self):
        self.make.equipment(self.lab, code="DUP-1")
        with self.assertRaises(Conflict):
            equipment.create_equipment(
                self.db, principal_of(self.admin), code="DUP-1", name="Other", category="X", lab_id=self.lab.id
            )
        # Same code in another campus is fine
        other_lab = self.make.lab(self.make.campus())
        sa = principal_of(self.make.user(Role.SUPER_ADMIN))
        equipment.create_equipment(self.db, sa, code="DUP-1", name="Other", category="X", lab_id=other_lab.id)

    def test_status_edit_is_audited(self):
        row = self.make.equipment(self.lab)
        equipment.update_equipment(
            self.db, row.id, principal_of(self.admin), {"status": "RETIRED"}, integrity_secret="audit-secret"
        )
        audit = self.db.query(AuditLog).filter(AuditLog.entity_id == row.id).one()
        self.assertEqual(audit.entity_type, AuditEntityType.EQUIPMENT.value)
        self.assertEqual(audit.old_value, {"status": "ACTIVE"})
        self.assertEqual(audit.new_value, {"status": "RETIRED"})

    def test_non_status_edit_writes_no_audit(self):
        row = self.make.equipment(self.lab)
        equipment.update_equipment(self.db, row.id, principal_of(self.admin), {"name": "Renamed"})
        self.assertEqual(self.db.query(AuditLog).count(), 0)
        self.assertEqual(self.reload(Equipment, row.id).name, "Renamed")

    def test_null_for_required_field_rejected(self):
        row = self.make.equipment(self.lab)
        with self.assertRaises(InvalidValue):
            equipment.update_equipment(self.db, row.id, principal_of(self.admin), {"lab_id": None})
        self.assertEqual(self.reload(Equipment, row.id).lab_id, self.lab.id)

    def test_move_to_lab_in_other_campus_rejected(self):
        row = self.make.equipment(self.lab)
        other_lab = self.make.lab(self.make.campus())
        with self.assertRaises(CrossCampusReference):
            equipment.update_equipment(self.db, row.id, principal_of(self.admin), {"lab_id": other_lab.id})

    def test_other_campus_admin_cannot_read(self):
        row = self.make.equipment(self.lab)
        outsider = self.make.user(Role.ADMIN, self.make.campus())
        with self.assertRaises(AccessDenied):
            equipment.get_equipment(self.db, row.id, principal_of(outsider))

    def test_delete_and_restore(self):
        row = self.make.equipment(self.lab)
        actor = principal_of(self.admin)
        equipment.soft_delete_equipment(self.db, row.id, actor)
        with self.assertRaises(NotFound):
            equipment.get_equipment(self.db, row.id, actor)
        restored = equipment.restore_equipment(self.db, row.id, actor)
        self.assertFalse(restored.is_deleted)
        with self.assertRaises(InvalidTransition):
            equipment.restore_equipment(self.db, row.id, actor)


class TestCampusesAndUsers(DatabaseTestCase):

    def setUp(self):
        super().setUp()
        self.campus = self.make.campus(code="NORTH")
        self.admin = self.make.user(Role.ADMIN, self.campus)

    def test_campus_code_is_unique(self):
        with self.assertRaises(Conflict):
            campuses.create_campus(self.db, name="Again", code="NORTH")

    def test_campus_delete_restore(self):
        campuses.set_campus_deleted(self.db, self.campus.id, True)
        with self.assertRaises(NotFound):
            campuses.get_campus(self.db, self.campus.id)
        with self.assertRaises(NotFound):
            campuses.set_campus_deleted(self.db, self.campus.id, True)
        campuses.set_campus_deleted(self.db, self.campus.id, False)
        with self.assertRaises(InvalidTransition):
            campuses.set_campus_deleted(self.db, self.campus.id, False)

    def test_admin_creates_lab_only_in_own_campus(self):
        lab = campuses.create_lab(self.db, principal_of(self.admin), name="Chem", code="CH1", campus_id=self.campus.id, capacity=24)
        self.assertEqual(lab.capacity, 24)
        with self.assertRaises(Conflict):
            campuses.create_lab(self.db, principal_of(self.admin), name="Chem", code="CH1", campus_id=self.campus.id)
        other = self.make.campus()
        with self.assertRaises(AccessDenied):
            campuses.create_lab(self.db, principal_of(self.admin), name="Bio", code="B1", campus_id=other.id)

    def test_lab_update_delete_restore(self):
        actor = principal_of(self.admin)
        lab = campuses.create_lab(self.db, actor, name="Chem", code="CH1", campus_id=self.campus.id)
        campuses.create_lab(self.db, actor, name="Bio", code="BI1", campus_id=self.campus.id)

        updated = campuses.update_lab(self.db, lab.id, actor, {"capacity": 30, "location": "Block B"})
        self.assertEqual((updated.capacity, updated.location), (30, "Block B"))
        with self.assertRaises(Conflict):
            campuses.update_lab(self.db, lab.id, actor, {"code": "BI1"})
        with self.assertRaises(InvalidValue):
            campuses.update_lab(self.db, lab.id, actor, {"name": None})

        with self.assertRaises(InvalidTransition):
            campuses.set_lab_deleted(self.db, lab.id, actor, False)
        campuses.set_lab_deleted(self.db, lab.id, actor, True)
        with self.assertRaises(NotFound):
            campuses.get_lab(self.db, lab.id, actor)
        with self.assertRaises(NotFound):
            campuses.set_lab_deleted(self.db, lab.id, actor, True)

        # The code was reused while the lab was deleted
        campuses.create_lab(self.db, actor, name="Chem II", code="CH1", campus_id=self.campus.id)
        with self.assertRaises(Conflict):
            campuses.set_lab_deleted(self.db, lab.id, actor, False)

    def test_other_campus_admin_cannot_touch_lab(self):
        lab = self.make.lab(self.campus)
        outsider = principal_of(self.make.user(Role.ADMIN, self.make.campus()))
        with self.assertRaises(AccessDenied):
            campuses.update_lab(self.db, lab.id, outsider, {"name": "Mine"})
        with self.assertRaises(AccessDenied):
            campuses.set_lab_deleted(self.db, lab.id, outsider, True)

    def test_admin_user_creation_scoping(self):
        actor = principal_of(self.admin)
        created = users.create_user(
            self.db, actor, name="Tess", email="Tess@Campus.edu", password_hash="x", role=Role.LAB_ASSISTANT
        )
        self.assertEqual(created.email, "tess@campus.edu")
        self.assertEqual(created.campus_id, self.campus.id)
        with self.assertRaises(Forbidden):
            users.create_user(self.db, actor, name="Root", email="root@campus.edu", password_hash="x", role=Role.SUPER_ADMIN)
        with self.assertRaises(Conflict):
            users.create_user(self.db, actor, name="Tess", email="tess@campus.edu", password_hash="x", role=Role.STUDENT)
        with self.assertRaises(AccessDenied):
            users.create_user(
                self.db, actor, name="Far", email="far@campus.edu", password_hash="x",
                role=Role.STUDENT, campus_id=uuid.uuid4(),
            )


if __name__ == "__main__":
    unittest.main()
