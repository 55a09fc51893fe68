import unittest
from datetime import timedelta

from labhub.models.enums import EquipmentStatus, IncidentStatus, Role, Severity
from labhub.models.models import utcnow
from labhub.services import reports

from support import DatabaseTestCase, days_ago


class ReportTestCase(DatabaseTestCase):

    def setUp(self):
        super().setUp()
        self.campus = self.make.campus(code="NORTH")
        self.other_campus = self.make.campus(code="SOUTH")
        self.lab = self.make.lab(self.campus)
        self.other_lab = self.make.lab(self.other_campus)
        self.admin = self.make.user(Role.ADMIN, self.campus)
        self.student = self.make.user(Role.STUDENT, self.campus)


class TestAgingCategory(unittest.TestCase):

    def test_bucket_edges(self):
        self.assertEqual(reports.aging_category(0), "0-24h")
        self.assertEqual(reports.aging_category(23.99), "0-24h")
        self.assertEqual(reports.aging_category(24), "24-72h")
        self.assertEqual(reports.aging_category(72), "3-7d")
        self.assertEqual(reports.aging_category(168), ">7d")


class TestIncidentSummary(ReportTestCase):

    def setUp(self):
        super().setUp()
        make = self.make
        make.incident(self.campus, self.student, severity=Severity.HIGH, created_at=utcnow() - timedelta(hours=2))
        make.incident(self.campus, self.student, status=IncidentStatus.ASSIGNED, created_at=days_ago(1.5))
        make.incident(self.campus, self.student, status=IncidentStatus.IN_PROGRESS, created_at=days_ago(5))
        make.incident(self.campus, self.student, severity=Severity.CRITICAL, created_at=days_ago(10))
        make.incident(self.campus, self.student, status=IncidentStatus.CLOSED, created_at=days_ago(20))
        make.incident(self.campus, self.student, is_deleted=True)
        make.incident(self.other_campus, self.make.user(Role.STUDENT, self.other_campus))

    def test_campus_summary(self):
        summary = reports.incident_summary(self.db, self.campus.id)
        self.assertEqual(summary["total_incidents"], 5)
        self.assertEqual(
            summary["by_status"],
            {"OPEN": 2, "ASSIGNED": 1, "IN_PROGRESS": 1, "RESOLVED": 0, "VERIFIED": 0, "CLOSED": 1},
        )
        self.assertEqual(
            summary["by_severity"],
            [{"severity": "CRITICAL", "count": 1}, {"severity": "HIGH", "count": 1}, {"severity": "MEDIUM", "count": 3}],
        )
        self.assertEqual(summary["by_problem_scope"], [{"problem_scope": "OTHER", "count": 5}])

    def test_aging_covers_unresolved_incidents_only(self):
        aging = reports.incident_summary(self.db, self.campus.id)["aging"]
        self.assertEqual(
            [(bucket["aging_category"], bucket["count"]) for bucket in aging["by_category"]],
            [("0-24h", 1), ("24-72h", 1), ("3-7d", 1), (">7d", 1)],
        )
        self.assertEqual(len(aging["details"]), 4)
        oldest = aging["details"][0]
        self.assertEqual(oldest["aging_category"], ">7d")
        self.assertGreaterEqual(oldest["open_hours"], 240)

    def test_all_campuses(self):
        self.assertEqual(reports.incident_summary(self.db)["total_incidents"], 6)


class TestEquipmentHealth(ReportTestCase):

    def test_status_and_warranty_counts(self):
        now = utcnow()
        self.make.equipment(self.lab, warranty_end_date=now - timedelta(days=1))
        self.make.equipment(self.lab, status=EquipmentStatus.DAMAGED, warranty_end_date=now + timedelta(days=10))
        self.make.equipment(self.lab, status=EquipmentStatus.MAINTENANCE, warranty_end_date=now + timedelta(days=60))
        self.make.equipment(self.lab, status=EquipmentStatus.RETIRED)
        self.make.equipment(self.lab, is_deleted=True, warranty_end_date=now + timedelta(days=3))
        self.make.equipment(self.other_lab, warranty_end_date=now + timedelta(days=3))

        health = reports.equipment_health(self.db, self.campus.id, now=now)
        self.assertEqual(health["total_equipment"], 4)
        self.assertEqual(health["by_status"], {"ACTIVE": 1, "DAMAGED": 1, "MAINTENANCE": 1, "RETIRED": 1})
        self.assertEqual(health["warranty_expired"], 1)
        self.assertEqual(health["warranty_expiring_within_30_days"], 1)

        self.assertEqual(reports.equipment_health(self.db, now=now)["warranty_expiring_within_30_days"], 2)


class TestMaintenanceCost(ReportTestCase):

    def test_costs_and_mttr(self):
        incident = self.make.incident(self.campus, self.student)
        first = self.make.equipment(self.lab, code="MIC-1")
        second = self.make.equipment(self.lab, code="MIC-2")
        sent = days_ago(3)
        self.make.maintenance(
            incident, first, self.admin, status="RETURNED", cost=100.5,
            sent_to_vendor_at=sent, returned_from_vendor_at=sent + timedelta(hours=10),
        )
        self.make.maintenance(
            incident, first, self.admin, status="RETURNED", cost=49.5,
            sent_to_vendor_at=sent, returned_from_vendor_at=sent + timedelta(hours=20),
        )
        self.make.maintenance(incident, second, self.admin, cost=20)
        self.make.maintenance(incident, second, self.admin, cost=999, is_deleted=True)

        other_incident = self.make.incident(self.other_campus, self.make.user(Role.STUDENT, self.other_campus))
        self.make.maintenance(other_incident, self.make.equipment(self.other_lab), self.admin, cost=500)

        summary = reports.maintenance_cost_summary(self.db, self.campus.id)
        self.assertEqual(len(summary["total_cost_per_campus"]), 1)
        campus_row = summary["total_cost_per_campus"][0]
        self.assertEqual(campus_row["campus_code"], "NORTH")
        self.assertAlmostEqual(campus_row["total_cost"], 170.0)
        self.assertAlmostEqual(campus_row["mttr_hours"], 15.0)
        self.assertEqual(
            [(row["equipment_code"], row["total_cost"]) for row in summary["total_cost_per_equipment"]],
            [("MIC-1", 150.0), ("MIC-2", 20.0)],
        )
        self.assertAlmostEqual(summary["mttr_hours"], 15.0)

        everything = reports.maintenance_cost_summary(self.db)
        self.assertEqual([row["campus_code"] for row in everything["total_cost_per_campus"]], ["NORTH", "SOUTH"])
        self.assertEqual(everything["total_cost_per_campus"][1]["mttr_hours"], 0.0)

    def test_empty(self):
        summary = reports.maintenance_cost_summary(self.db, self.campus.id)
        self.assertEqual(summary, {"total_cost_per_campus": [], "total_cost_per_equipment": [], "mttr_hours": 0.0})


class TestCapaExport(ReportTestCase):

    def test_rows_and_csv(self):
        resolved_at = utcnow()
        resolved = self.make.incident(
            self.campus, self.student, status=IncidentStatus.RESOLVED, severity=Severity.HIGH,
            root_cause="Gear, worn", corrective_action="Replaced gear", preventive_action="Inspect",
            resolved_at=resolved_at, created_at=days_ago(1),
        )
        fresh = self.make.incident(self.campus, self.student)

        rows = reports.capa_export_rows(self.db, self.campus.id)
        self.assertEqual([row["incident_id"] for row in rows], [str(fresh.id), str(resolved.id)])
        self.assertEqual(rows[0]["root_cause"], "")
        self.assertEqual(rows[1]["resolved_at"], resolved_at.isoformat())
        self.assertEqual(rows[1]["verified_at"], "")

        lines = reports.capa_csv(rows).splitlines()
        self.assertEqual(
            lines[0],
            "incident_id,severity,root_cause,corrective_action,preventive_action,resolved_at,verified_at",
        )
        self.assertIn('"Gear, worn"', lines[2])


if __name__ == "__main__":
    unittest.main()
