import unittest
import uuid
from unittest.mock import patch

from labhub.models.enums import AuditEntityType, EquipmentStatus, MaintenanceStatus, Role
from labhub.models.models import AuditLog, Equipment, Maintenance
from labhub.services import maintenance
from labhub.services.errors import (
    AccessDenied,
    CrossCampusReference,
    Forbidden,
    InvalidStatus,
    InvalidTransition,
    InvalidValue,
    MissingField,
    NotFound,
)
from labhub.services.maintenance import MaintenanceFields, transition_maintenance

from support import DatabaseTestCase, principal_of


LEGAL_EDGES = {
    (MaintenanceStatus.PENDING, MaintenanceStatus.SENT),
    (MaintenanceStatus.SENT, MaintenanceStatus.RETURNED),
    (MaintenanceStatus.RETURNED, MaintenanceStatus.COMPLETED),
}
ADMIN_LEVEL = {Role.ADMIN, Role.SUPER_ADMIN, Role.DEVELOPER}


class MaintenanceTestCase(DatabaseTestCase):

    def setUp(self):
        super().setUp()
        self.campus = self.make.campus()
        self.lab = self.make.lab(self.campus)
        self.admin = self.make.user(Role.ADMIN, self.campus)
        self.assistant = self.make.user(Role.LAB_ASSISTANT, self.campus)
        self.equipment = self.make.equipment(self.lab, status=EquipmentStatus.DAMAGED)
        self.incident = self.make.incident(self.campus, self.assistant, equipment_id=self.equipment.id)

    def audit_rows(self, entity_type):
        self.db.expire_all()
        return (
            self.db.query(AuditLog)
            .filter(AuditLog.entity_type == entity_type.value)
            .order_by(AuditLog.created_at)
            .all()
        )


class TestCreateMaintenance(MaintenanceTestCase):

    def test_creates_pending_record_in_equipment_campus(self):
        record = maintenance.create_maintenance(
            self.db, principal_of(self.assistant),
            title="Recalibrate", incident_id=self.incident.id, equipment_id=self.equipment.id,
        )
        self.assertEqual(record.status, "PENDING")
        self.assertEqual(record.campus_id, self.campus.id)
        self.assertEqual(record.lab_id, self.lab.id)
        self.assertEqual(record.created_by_id, self.assistant.id)

    def test_missing_references(self):
        actor = principal_of(self.admin)
        with self.assertRaises(NotFound):
            maintenance.create_maintenance(
                self.db, actor, title="x", incident_id=self.incident.id, equipment_id=uuid.uuid4()
            )
        with self.assertRaises(NotFound):
            maintenance.create_maintenance(
                self.db, actor, title="x", incident_id=uuid.uuid4(), equipment_id=self.equipment.id
            )

    def test_incident_and_equipment_must_share_campus(self):
        other_lab = self.make.lab(self.make.campus())
        foreign = self.make.equipment(other_lab)
        sa = principal_of(self.make.user(Role.SUPER_ADMIN))
        with self.assertRaises(CrossCampusReference):
            maintenance.create_maintenance(
                self.db, sa, title="x", incident_id=self.incident.id, equipment_id=foreign.id
            )

    def test_other_campus_actor_denied(self):
        outsider = self.make.user(Role.ADMIN, self.make.campus())
        with self.assertRaises(AccessDenied):
            maintenance.create_maintenance(
                self.db, principal_of(outsider), title="x",
                incident_id=self.incident.id, equipment_id=self.equipment.id,
            )

    def test_scope_checked_before_incident_lookup(self):
        """An outsider learns nothing about incidents behind foreign equipment."""
        outsider = principal_of(self.make.user(Role.ADMIN, self.make.campus()))
        foreign_incident = self.make.incident(self.make.campus(), self.make.user(Role.STUDENT))
        for incident_id in (uuid.uuid4(), foreign_incident.id):
            with self.assertRaises(AccessDenied):
                maintenance.create_maintenance(
                    self.db, outsider, title="x", incident_id=incident_id, equipment_id=self.equipment.id
                )


class TestTransitionMatrix(MaintenanceTestCase):

    def test_only_enumerated_edges_succeed(self):
        for role in Role:
            actor = principal_of(self.make.user(role, self.campus))
            for current in MaintenanceStatus:
                for requested in MaintenanceStatus:
                    record = self.make.maintenance(
                        self.incident, self.equipment, self.admin, status=current, vendor_name="Acme Optics"
                    )
                    fields = MaintenanceFields(equipment_outcome="ACTIVE")
                    legal = (current, requested) in LEGAL_EDGES
                    with self.subTest(role=role, current=current, requested=requested):
                        if requested == MaintenanceStatus.PENDING:
                            with self.assertRaises(InvalidTransition):
                                transition_maintenance(self.db, record.id, requested.value, actor, fields)
                        elif role not in ADMIN_LEVEL:
                            with self.assertRaises(Forbidden):
                                transition_maintenance(self.db, record.id, requested.value, actor, fields)
                        elif legal:
                            updated = transition_maintenance(self.db, record.id, requested.value, actor, fields)
                            self.assertEqual(updated.status, requested.value)
                        else:
                            with self.assertRaises(InvalidTransition):
                                transition_maintenance(self.db, record.id, requested.value, actor, fields)
                        if not (legal and role in ADMIN_LEVEL):
                            self.assertEqual(self.reload(Maintenance, record.id).status, current.value)

    def test_unknown_status(self):
        record = self.make.maintenance(self.incident, self.equipment, self.admin)
        with self.assertRaises(InvalidStatus):
            transition_maintenance(self.db, record.id, "LOST", principal_of(self.admin))


class TestVendorScenarios(MaintenanceTestCase):

    def test_send_to_vendor(self):
        """PENDING -> SENT moves the equipment into MAINTENANCE and audits both rows."""
        record = self.make.maintenance(self.incident, self.equipment, self.admin)
        updated = transition_maintenance(
            self.db, record.id, "SENT", principal_of(self.admin), MaintenanceFields(vendor_name="Acme Optics")
        )
        self.assertEqual(updated.status, "SENT")
        self.assertEqual(updated.vendor_name, "Acme Optics")
        self.assertIsNotNone(updated.sent_to_vendor_at)
        self.assertEqual(self.reload(Equipment, self.equipment.id).status, "MAINTENANCE")

        maintenance_rows = self.audit_rows(AuditEntityType.MAINTENANCE)
        equipment_rows = self.audit_rows(AuditEntityType.EQUIPMENT)
        self.assertEqual(len(maintenance_rows), 1)
        self.assertEqual(len(equipment_rows), 1)
        self.assertEqual(maintenance_rows[0].old_value["status"], "PENDING")
        self.assertEqual(maintenance_rows[0].new_value["status"], "SENT")
        self.assertEqual(equipment_rows[0].old_value, {"status": "DAMAGED"})
        self.assertEqual(equipment_rows[0].new_value, {"status": "MAINTENANCE"})
        self.assertEqual(equipment_rows[0].entity_id, self.equipment.id)

    def test_send_requires_vendor(self):
        record = self.make.maintenance(self.incident, self.equipment, self.admin)
        with self.assertRaises(MissingField) as ctx:
            transition_maintenance(self.db, record.id, "SENT", principal_of(self.admin),
                                   MaintenanceFields(vendor_name="  "))
        self.assertEqual(ctx.exception.fields, ["vendor_name"])
        self.assertEqual(self.reload(Equipment, self.equipment.id).status, "DAMAGED")

    def test_stored_vendor_satisfies_send(self):
        record = self.make.maintenance(self.incident, self.equipment, self.admin, vendor_name="Stored Vendor")
        updated = transition_maintenance(self.db, record.id, "SENT", principal_of(self.admin))
        self.assertEqual(updated.vendor_name, "Stored Vendor")

    def test_return_sets_equipment_outcome(self):
        for outcome in ("ACTIVE", "DAMAGED"):
            with self.subTest(outcome=outcome):
                record = self.make.maintenance(
                    self.incident, self.equipment, self.admin, status=MaintenanceStatus.SENT, vendor_name="Acme"
                )
                updated = transition_maintenance(
                    self.db, record.id, "RETURNED", principal_of(self.admin),
                    MaintenanceFields(equipment_outcome=outcome, cost=120.5, resolution_notes="Lens swapped"),
                )
                self.assertEqual(updated.status, "RETURNED")
                self.assertEqual(updated.cost, 120.5)
                self.assertIsNotNone(updated.returned_from_vendor_at)
                self.assertEqual(self.reload(Equipment, self.equipment.id).status, outcome)

    def test_return_outcome_missing_or_invalid(self):
        record = self.make.maintenance(self.incident, self.equipment, self.admin, status=MaintenanceStatus.SENT)
        with self.assertRaises(MissingField) as ctx:
            transition_maintenance(self.db, record.id, "RETURNED", principal_of(self.admin))
        self.assertEqual(ctx.exception.fields, ["equipment_outcome"])
        with self.assertRaises(InvalidValue):
            transition_maintenance(self.db, record.id, "RETURNED", principal_of(self.admin),
                                   MaintenanceFields(equipment_outcome="RETIRED"))
        self.assertEqual(self.reload(Maintenance, record.id).status, "SENT")

    def test_complete_leaves_equipment_alone(self):
        record = self.make.maintenance(self.incident, self.equipment, self.admin, status=MaintenanceStatus.RETURNED)
        updated = transition_maintenance(self.db, record.id, "COMPLETED", principal_of(self.admin))
        self.assertIsNotNone(updated.completed_date)
        self.assertEqual(self.reload(Equipment, self.equipment.id).status, "DAMAGED")
        self.assertEqual(self.audit_rows(AuditEntityType.EQUIPMENT), [])

    def test_assistant_cannot_drive_lifecycle(self):
        record = self.make.maintenance(self.incident, self.equipment, self.admin)
        with self.assertRaises(Forbidden):
            transition_maintenance(self.db, record.id, "SENT", principal_of(self.assistant),
                                   MaintenanceFields(vendor_name="Acme"))


class TestMaintenanceAtomicity(MaintenanceTestCase):

    def test_audit_failure_rolls_back_record_and_equipment(self):
        record = self.make.maintenance(self.incident, self.equipment, self.admin)
        with patch("labhub.services.maintenance.record_status_change", side_effect=RuntimeError("audit store down")):
            with self.assertRaises(RuntimeError):
                transition_maintenance(self.db, record.id, "SENT", principal_of(self.admin),
                                       MaintenanceFields(vendor_name="Acme"))
        self.assertEqual(self.reload(Maintenance, record.id).status, "PENDING")
        self.assertIsNone(self.reload(Maintenance, record.id).vendor_name)
        self.assertEqual(self.reload(Equipment, self.equipment.id).status, "DAMAGED")
        self.assertEqual(self.db.query(AuditLog).count(), 0)


class TestMaintenanceCrud(MaintenanceTestCase):

    def test_update_rejects_status(self):
        record = self.make.maintenance(self.incident, self.equipment, self.admin)
        with self.assertRaises(InvalidValue):
            maintenance.update_maintenance(self.db, record.id, principal_of(self.admin), {"status": "SENT"})
        updated = maintenance.update_maintenance(self.db, record.id, principal_of(self.admin), {"notes": "Call first"})
        self.assertEqual(updated.notes, "Call first")

    def test_update_rejects_null_title(self):
        record = self.make.maintenance(self.incident, self.equipment, self.admin)
        with self.assertRaises(InvalidValue):
            maintenance.update_maintenance(self.db, record.id, principal_of(self.admin), {"title": None})
        self.assertEqual(self.reload(Maintenance, record.id).title, "Replace stage motor")

    def test_soft_delete_hides_record_from_transitions(self):
        record = self.make.maintenance(self.incident, self.equipment, self.admin)
        actor = principal_of(self.admin)
        maintenance.soft_delete_maintenance(self.db, record.id, actor)
        with self.assertRaises(NotFound):
            transition_maintenance(self.db, record.id, "SENT", actor, MaintenanceFields(vendor_name="Acme"))
        rows, pagination = maintenance.list_maintenance(self.db, actor)
        self.assertEqual(pagination["total"], 0)
        maintenance.restore_maintenance(self.db, record.id, actor)
        _, pagination = maintenance.list_maintenance(self.db, actor)
        self.assertEqual(pagination["total"], 1)


if __name__ == "__main__":
    unittest.main()
