import unittest
from unittest.mock import patch

from controle_pedidos.db import close_db
from controle_pedidos.ui_strings import error_message
from tests.helpers.api import build_temp_app, current_period_id, login
from tests.helpers.temp_db import TempDbSandbox


class ErrorPermissionTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="error_perm")
        self.app = build_temp_app(self._temp_db)
        self.client = self.app.test_client()

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def test_permission_error_for_unauthenticated_api(self) -> None:
        response = self.client.get("/api/periods")
        self.assertEqual(response.status_code, 401)

        payload = response.get_json()
        self.assertEqual(payload.get("error"), "auth_required")
        self.assertEqual(payload.get("message"), error_message("auth_required"))
        self.assertTrue((payload.get("request_id") or "").strip())
        self.assertEqual(response.headers.get("X-Request-Id"), payload.get("request_id"))
        self.assertNotIn("Traceback", response.get_data(as_text=True))

    def test_incoming_request_id_is_echoed(self) -> None:
        response = self.client.get("/api/periods", headers={"X-Request-Id": "req-abc-123"})
        self.assertEqual(response.get_json().get("request_id"), "req-abc-123")


class ErrorHandlingApiTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="error_api")
        self.app = build_temp_app(self._temp_db)
        self.client = self.app.test_client()
        login(self.client)
        self.period_id = current_period_id(self.client)

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def test_not_found_error_uses_domain_code(self) -> None:
        response = self.client.get("/api/orders/999")
        self.assertEqual(response.status_code, 404)
        payload = response.get_json()
        self.assertEqual(payload.get("error"), "order_not_found")
        self.assertEqual(payload.get("message"), error_message("order_not_found"))

    def test_unknown_route_stays_a_plain_404(self) -> None:
        response = self.client.get("/api/nao-existe")
        self.assertEqual(response.status_code, 404)

    def test_stack_trace_not_exposed_for_unhandled_error(self) -> None:
        with patch(
            "controle_pedidos.routes.order_routes._ORDER_SERVICE.list_orders",
            side_effect=RuntimeError("stack_secret_token"),
        ):
            response = self.client.get(f"/api/periods/{self.period_id}/orders")

        self.assertEqual(response.status_code, 500)
        payload = response.get_json()
        self.assertEqual(payload.get("error"), "unexpected_error")
        self.assertEqual(payload.get("message"), error_message("unexpected_error"))
        body = response.get_data(as_text=True)
        self.assertNotIn("Traceback", body)
        self.assertNotIn("stack_secret_token", body)


if __name__ == "__main__":
    unittest.main()
