import unittest

from controle_pedidos.db import close_db
from tests.helpers.api import build_temp_app, create_collaborator, current_period_id, login
from tests.helpers.temp_db import TempDbSandbox


class TrackingApiTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="tracking_api")
        self.app = build_temp_app(self._temp_db)
        self.admin = self.app.test_client()
        login(self.admin)
        self.period_id = current_period_id(self.admin)

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def test_litigation_lifecycle(self) -> None:
        missing = self.admin.post(f"/api/periods/{self.period_id}/litigations", json={"client": "Ana"})
        self.assertEqual(missing.status_code, 400)
        self.assertEqual(missing.get_json()["error"], "litigation_fields_required")

        created = self.admin.post(
            f"/api/periods/{self.period_id}/litigations",
            json={
                "case_number": "0001234-55",
                "client": "Ana",
                "lawyer": "Dr. Paulo",
                "product": "Óleo",
                "quantity": "4",
                "total_amount": "2.000,00",
                "date": "01/03/2025",
            },
        )
        self.assertEqual(created.status_code, 201)
        row = created.get_json()["litigation"]
        self.assertEqual(row["status"], "budgeted")
        self.assertEqual(row["quantity"], 4)
        self.assertEqual(row["total_amount"], 2000.0)
        self.assertEqual(row["date"], "2025-03-01")

        quick = self.admin.patch(f"/api/litigations/{row['id']}", json={"status": "Entregue"})
        self.assertEqual(quick.get_json()["litigation"]["status"], "delivered")

        full_edit = self.admin.patch(f"/api/litigations/{row['id']}", json={"client": "", "product": "Óleo"})
        self.assertEqual(full_edit.status_code, 400)

        listed = self.admin.get(f"/api/periods/{self.period_id}/litigations").get_json()["litigations"]
        self.assertEqual([item["id"] for item in listed], [row["id"]])

    def test_shipment_status_and_admin_delete(self) -> None:
        created = self.admin.post(
            f"/api/periods/{self.period_id}/shipments",
            json={"recipient_name": "Carlos", "product": "Gotas", "tracking_code": "BR77"},
        )
        self.assertEqual(created.status_code, 201)
        shipment = created.get_json()["shipment"]
        self.assertEqual(shipment["status"], "pending")

        bad = self.admin.patch(f"/api/shipments/{shipment['id']}", json={"status": "extraviado"})
        self.assertEqual(bad.get_json()["error"], "status_invalid")

        collab = create_collaborator(self.admin, self.app, name="Lia", email="lia@empresa.com")
        self.assertEqual(
            collab.patch(f"/api/shipments/{shipment['id']}", json={"status": "shipped"}).status_code,
            200,
        )
        self.assertEqual(collab.delete(f"/api/shipments/{shipment['id']}").status_code, 403)
        self.assertEqual(self.admin.delete(f"/api/shipments/{shipment['id']}").status_code, 200)
        self.assertEqual(self.admin.patch(f"/api/shipments/{shipment['id']}", json={"status": "pending"}).status_code, 404)

    def test_single_field_edits_keep_stored_values(self) -> None:
        shipment = self.admin.post(
            f"/api/periods/{self.period_id}/shipments",
            json={"recipient_name": "Ana", "product": "Gotas"},
        ).get_json()["shipment"]
        tracked = self.admin.patch(f"/api/shipments/{shipment['id']}", json={"tracking_code": "BR123"})
        self.assertEqual(tracked.status_code, 200, tracked.get_json())
        self.assertEqual(tracked.get_json()["shipment"]["tracking_code"], "BR123")
        self.assertEqual(tracked.get_json()["shipment"]["recipient_name"], "Ana")

        litigation = self.admin.post(
            f"/api/periods/{self.period_id}/litigations",
            json={"client": "Ana", "product": "Óleo"},
        ).get_json()["litigation"]
        noted = self.admin.patch(f"/api/litigations/{litigation['id']}", json={"notes": "liminar"})
        self.assertEqual(noted.status_code, 200, noted.get_json())
        self.assertEqual(noted.get_json()["litigation"]["notes"], "liminar")
        self.assertEqual(noted.get_json()["litigation"]["client"], "Ana")

        cleared = self.admin.patch(f"/api/shipments/{shipment['id']}", json={"product": " "})
        self.assertEqual(cleared.status_code, 400)
        self.assertEqual(cleared.get_json()["error"], "shipment_fields_required")

        empty = self.admin.patch(f"/api/shipments/{shipment['id']}", json={"unknown": "x"})
        self.assertEqual(empty.get_json()["error"], "no_changes")

    def test_unknown_period(self) -> None:
        response = self.admin.get("/api/periods/999/shipments")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()["error"], "period_not_found")


if __name__ == "__main__":
    unittest.main()
