import sqlite3
import unittest

from controle_pedidos.application.order_service import OrderService
from controle_pedidos.db import Database, close_db, get_db
from controle_pedidos.domain.contracts import Actor, OrderReserveInput
from controle_pedidos.errors import ConflictError
from controle_pedidos.infrastructure.repositories import OrderRepository
from controle_pedidos.ui_strings import error_message
from tests.helpers.api import build_temp_app, create_collaborator, current_period_id, login
from tests.helpers.temp_db import TempDbSandbox


class _NoPrecheckOrderRepository(OrderRepository):
    def find_by_number(self, db, period_id: int, order_number: str):
        return None


class OrderReservationLeaseTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="order_lease")
        self.app = build_temp_app(self._temp_db)
        self.admin = self.app.test_client()
        login(self.admin)
        self.collab = create_collaborator(self.admin, self.app, name="Bruna", email="bruna@empresa.com")
        self.period_id = current_period_id(self.admin)

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def _reserve(self, client, number: str):
        return client.post(f"/api/periods/{self.period_id}/orders/reserve", json={"order_number": number})

    def _expire_leases(self) -> None:
        with self.app.app_context():
            db = get_db()
            db.execute("UPDATE orders SET editing_expires_at = ?", ("2000-01-01T00:00:00Z",))
            db.commit()
            close_db()

    def test_reserve_creates_order_with_lease_for_caller(self) -> None:
        response = self._reserve(self.admin, " a-100 ")
        self.assertEqual(response.status_code, 201)
        payload = response.get_json()
        order = payload["order"]
        self.assertEqual(order["order_number"], "A-100")
        self.assertEqual(order["status"], "separating")
        self.assertEqual(order["quantity"], 1)
        self.assertTrue(order["editing_active"])
        self.assertEqual(payload["lease"]["holder_id"], order["editing_by"])
        self.assertEqual(payload["message"], "Pedido A-100 reservado! Complete os dados.")

    def test_blank_number_is_rejected(self) -> None:
        response = self._reserve(self.admin, "   ")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "order_number_required")

    def test_duplicate_number_in_period_is_case_insensitive(self) -> None:
        self.assertEqual(self._reserve(self.admin, "abc").status_code, 201)
        response = self._reserve(self.collab, "ABC")
        self.assertEqual(response.status_code, 409)
        payload = response.get_json()
        self.assertEqual(payload["error"], "order_number_exists")
        self.assertEqual(payload["message"], error_message("order_number_exists", number="ABC"))

    def test_second_user_cannot_take_a_held_order(self) -> None:
        order_id = self._reserve(self.admin, "500").get_json()["order"]["id"]

        response = self.collab.post(f"/api/orders/{order_id}/lease")
        self.assertEqual(response.status_code, 409)
        payload = response.get_json()
        self.assertEqual(payload["error"], "order_being_edited")
        self.assertEqual(payload["message"], "Pedido em edição por Administrador.")

    def test_expired_lease_can_be_taken_over(self) -> None:
        order_id = self._reserve(self.admin, "501").get_json()["order"]["id"]
        self._expire_leases()

        response = self.collab.post(f"/api/orders/{order_id}/lease")
        self.assertEqual(response.status_code, 200)
        order = self.admin.get(f"/api/orders/{order_id}").get_json()["order"]
        self.assertEqual(order["editing_by"], response.get_json()["lease"]["holder_id"])
        self.assertTrue(order["editing_active"])

        renew = self.admin.put(f"/api/orders/{order_id}/lease")
        self.assertEqual(renew.status_code, 409)
        self.assertEqual(renew.get_json()["error"], "lease_not_held")

    def test_one_lease_per_user(self) -> None:
        self.assertEqual(self._reserve(self.admin, "600").status_code, 201)
        other_id = self._reserve(self.collab, "602").get_json()["order"]["id"]
        self.collab.delete(f"/api/orders/{other_id}/lease")

        second = self._reserve(self.admin, "601")
        self.assertEqual(second.status_code, 409)
        payload = second.get_json()
        self.assertEqual(payload["error"], "finish_current_edit_first")
        self.assertEqual(payload["editing_order_number"], "600")

        response = self.admin.post(f"/api/orders/{other_id}/lease")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()["error"], "finish_current_edit_first")

        # The refused reservation left nothing behind.
        listed = self.admin.get(f"/api/periods/{self.period_id}/orders").get_json()["orders"]
        self.assertEqual(sorted(order["order_number"] for order in listed), ["600", "602"])

    def test_refused_reservation_writes_nothing_under_autocommit(self) -> None:
        self.assertEqual(self._reserve(self.admin, "600").status_code, 201)
        admin_id = self.admin.get("/api/auth/session").get_json()["user"]["id"]

        conn = sqlite3.connect(self._temp_db.db_path, isolation_level=None)
        conn.row_factory = sqlite3.Row
        db = Database("sqlite", conn)
        try:
            with self.app.app_context():
                with self.assertRaises(ConflictError) as ctx:
                    OrderService().reserve(
                        db,
                        actor=Actor(user_id=admin_id, role="admin", name="Administrador"),
                        reserve_input=OrderReserveInput(period_id=self.period_id, order_number="601"),
                    )
            self.assertEqual(ctx.exception.code, "finish_current_edit_first")
            numbers = [row["order_number"] for row in db.execute("SELECT order_number FROM orders").fetchall()]
        finally:
            db.close()
        self.assertEqual(numbers, ["600"])

    def test_unique_index_arbitrates_when_precheck_misses(self) -> None:
        self.assertEqual(self._reserve(self.collab, "800").status_code, 201)
        admin_id = self.admin.get("/api/auth/session").get_json()["user"]["id"]

        with self.app.app_context():
            service = OrderService(repository=_NoPrecheckOrderRepository())
            with self.assertRaises(ConflictError) as ctx:
                service.reserve(
                    get_db(),
                    actor=Actor(user_id=admin_id, role="admin", name="Administrador"),
                    reserve_input=OrderReserveInput(period_id=self.period_id, order_number="800"),
                )
            close_db()
        self.assertEqual(ctx.exception.code, "order_number_taken")

        listed = self.admin.get(f"/api/periods/{self.period_id}/orders").get_json()["orders"]
        self.assertEqual([order["order_number"] for order in listed], ["800"])

    def test_same_number_in_another_period(self) -> None:
        self.assertEqual(self._reserve(self.admin, "A100").status_code, 201)
        self.admin.delete(f"/api/orders/{self._only_order_id()}/lease")
        other_period = self.admin.post("/api/periods", json={"name": "Outro mês"}).get_json()["period"]["id"]

        response = self.admin.post(f"/api/periods/{other_period}/orders/reserve", json={"order_number": "a100"})
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.get_json()["order"]["period_id"], other_period)

    def _only_order_id(self) -> int:
        listed = self.admin.get(f"/api/periods/{self.period_id}/orders").get_json()["orders"]
        return listed[0]["id"]


    def test_collaborator_without_lease_only_changes_logistics_fields(self) -> None:
        order_id = self._reserve(self.admin, "700").get_json()["order"]["id"]

        denied = self.collab.patch(f"/api/orders/{order_id}", json={"field": "client", "value": "Outro"})
        self.assertEqual(denied.status_code, 403)
        self.assertEqual(denied.get_json()["error"], "field_permission_denied")

        allowed = self.collab.patch(f"/api/orders/{order_id}", json={"field": "status", "value": "Em Trânsito"})
        self.assertEqual(allowed.status_code, 200)
        self.assertEqual(allowed.get_json()["order"]["status"], "in_transit")

        tracking = self.collab.patch(f"/api/orders/{order_id}", json={"field": "tracking_code", "value": " BR9 "})
        self.assertEqual(tracking.get_json()["order"]["tracking_code"], "BR9")

    def test_field_coercion_and_validation(self) -> None:
        order_id = self._reserve(self.admin, "710").get_json()["order"]["id"]

        response = self.admin.patch(
            f"/api/orders/{order_id}",
            json={"fields": {"quantity": "3", "total_amount": "1.550,20", "date": "05/02/2025"}},
        )
        self.assertEqual(response.status_code, 200)
        order = response.get_json()["order"]
        self.assertEqual(order["quantity"], 3)
        self.assertEqual(order["total_amount"], 1550.2)
        self.assertEqual(order["date"], "2025-02-05")

        bad_status = self.admin.patch(f"/api/orders/{order_id}", json={"field": "status", "value": "perdido"})
        self.assertEqual(bad_status.status_code, 400)
        self.assertEqual(bad_status.get_json()["error"], "status_invalid")

        unknown = self.admin.patch(f"/api/orders/{order_id}", json={"field": "editing_by", "value": 1})
        self.assertEqual(unknown.status_code, 400)
        self.assertEqual(unknown.get_json()["error"], "field_unknown")

        empty = self.admin.patch(f"/api/orders/{order_id}", json={})
        self.assertEqual(empty.get_json()["error"], "no_changes")

    def test_renaming_to_existing_number_conflicts(self) -> None:
        own_id = self._reserve(self.admin, "800").get_json()["order"]["id"]
        self.admin.patch(f"/api/orders/{own_id}", json={"fields": {"client": "Ana", "product": "Gotas"}})
        self.assertEqual(self.admin.post(f"/api/orders/{own_id}/finish").status_code, 200)

        other_id = self._reserve(self.admin, "801").get_json()["order"]["id"]
        response = self.admin.patch(f"/api/orders/{other_id}", json={"field": "order_number", "value": "800"})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()["error"], "order_number_exists")

    def test_finish_requires_client_and_product_and_releases_lease(self) -> None:
        order_id = self._reserve(self.admin, "900").get_json()["order"]["id"]

        incomplete = self.admin.post(f"/api/orders/{order_id}/finish")
        self.assertEqual(incomplete.status_code, 400)
        payload = incomplete.get_json()
        self.assertEqual(payload["error"], "order_incomplete")
        self.assertEqual(payload["missing_fields"], ["client", "product"])
        # Still the holder after a failed finish.
        self.assertEqual(self.admin.put(f"/api/orders/{order_id}/lease").status_code, 200)

        self.admin.patch(f"/api/orders/{order_id}", json={"fields": {"client": "Ana", "product": "Gotas"}})
        finished = self.admin.post(f"/api/orders/{order_id}/finish")
        self.assertEqual(finished.status_code, 200)
        self.assertFalse(finished.get_json()["order"]["editing_active"])
        self.assertIsNone(finished.get_json()["order"]["editing_by"])

        self.assertEqual(self.collab.post(f"/api/orders/{order_id}/lease").status_code, 200)

    def test_cancel_keeps_written_fields(self) -> None:
        order_id = self._reserve(self.admin, "950").get_json()["order"]["id"]
        self.admin.patch(f"/api/orders/{order_id}", json={"field": "client", "value": "Carla"})

        cancelled = self.admin.delete(f"/api/orders/{order_id}/lease")
        self.assertEqual(cancelled.status_code, 200)
        self.assertTrue(cancelled.get_json()["released"])

        order = self.admin.get(f"/api/orders/{order_id}").get_json()["order"]
        self.assertEqual(order["client"], "Carla")
        self.assertFalse(order["editing_active"])

    def test_delete_is_admin_only(self) -> None:
        order_id = self._reserve(self.admin, "990").get_json()["order"]["id"]
        denied = self.collab.delete(f"/api/orders/{order_id}")
        self.assertEqual(denied.status_code, 403)
        self.assertEqual(denied.get_json()["error"], "admin_only")

        deleted = self.admin.delete(f"/api/orders/{order_id}")
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(self.admin.get(f"/api/orders/{order_id}").status_code, 404)

    def test_list_search_stats_and_thc(self) -> None:
        first_id = self._reserve(self.admin, "1").get_json()["order"]["id"]
        self.admin.patch(
            f"/api/orders/{first_id}",
            json={"fields": {"client": "Maria Souza", "product": "Gotas", "seller": "Ana", "date": "2025-01-20"}},
        )
        self.admin.post(f"/api/orders/{first_id}/finish")
        second_id = self._reserve(self.admin, "2").get_json()["order"]["id"]
        self.admin.patch(f"/api/orders/{second_id}", json={"fields": {"client": "João", "product": "Óleo"}})
        self.admin.post(f"/api/orders/{second_id}/finish")
        self.admin.patch(f"/api/orders/{first_id}", json={"field": "status", "value": "THC / 2000"})

        listed = self.admin.get(f"/api/periods/{self.period_id}/orders").get_json()["orders"]
        self.assertEqual([order["order_number"] for order in listed], ["2", "1"])

        searched = self.admin.get(f"/api/periods/{self.period_id}/orders?search=souza").get_json()["orders"]
        self.assertEqual([order["id"] for order in searched], [first_id])

        stats = self.admin.get(f"/api/periods/{self.period_id}/orders/stats").get_json()
        self.assertEqual(stats["total"], 2)
        self.assertEqual(stats["by_status"]["thc_2000"], 1)

        thc = self.admin.get("/api/orders/thc?search=ana").get_json()["orders"]
        self.assertEqual(len(thc), 1)
        self.assertEqual(thc[0]["thc_deadline"], "2025-02-05")
        self.assertEqual(thc[0]["thc_sub_status"], "pending_shipment")

        bad_sub = self.admin.patch(f"/api/orders/{first_id}", json={"field": "thc_sub_status", "value": "Enviado"})
        self.assertEqual(bad_sub.status_code, 400)
        self.admin.patch(f"/api/orders/{first_id}", json={"field": "thc_sub_status", "value": "shipped"})
        self.assertEqual(
            self.admin.get("/api/orders/thc/stats").get_json(),
            {"total": 1, "pending_shipment": 0, "shipped": 1},
        )

    def test_search_treats_like_wildcards_literally(self) -> None:
        for number in ("10%", "105", "1_5"):
            order_id = self._reserve(self.admin, number).get_json()["order"]["id"]
            self.admin.delete(f"/api/orders/{order_id}/lease")

        def search(term: str) -> list:
            response = self.admin.get(f"/api/periods/{self.period_id}/orders", query_string={"search": term})
            return sorted(order["order_number"] for order in response.get_json()["orders"])

        self.assertEqual(search("0%"), ["10%"])
        self.assertEqual(search("1_"), ["1_5"])
        self.assertEqual(search("!"), [])
        self.assertEqual(search("10"), ["10%", "105"])


if __name__ == "__main__":
    unittest.main()
