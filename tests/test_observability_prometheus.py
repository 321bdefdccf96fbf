import json
import logging
import unittest

from controle_pedidos.db import close_db
from controle_pedidos.observability import JsonLogFormatter, set_log_request_id
from tests.helpers.api import build_temp_app, create_collaborator, current_period_id, login
from tests.helpers.temp_db import TempDbSandbox


class ObservabilityPrometheusTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="observability_metrics")
        self.app = build_temp_app(self._temp_db)
        self.client = self.app.test_client()

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()
        set_log_request_id(None)

    def test_metrics_endpoint_exposes_prometheus_metrics(self) -> None:
        login(self.client)
        period_id = current_period_id(self.client)
        order_id = self.client.post(
            f"/api/periods/{period_id}/orders/reserve",
            json={"order_number": "55"},
        ).get_json()["order"]["id"]
        other = create_collaborator(self.client, self.app, name="Ivo", email="ivo@empresa.com")
        self.assertEqual(other.post(f"/api/orders/{order_id}/lease").status_code, 409)

        response = self.client.get("/metrics")
        self.assertEqual(response.status_code, 200)
        self.assertIn("text/plain", response.headers.get("Content-Type") or "")

        payload = response.get_data(as_text=True)
        self.assertIn("http_request_total", payload)
        self.assertIn("http_request_duration_ms_bucket", payload)
        self.assertIn('domain_event_emitted_total{event_type="OrderReserved"} 1', payload)
        self.assertIn('edit_lease_conflict_total{reason="held_by_other"} 1', payload)
        self.assertIn("csv_rows_total", payload)

    def test_log_formatter_includes_request_id_outside_request_context(self) -> None:
        set_log_request_id("worker-req-123")
        formatter = JsonLogFormatter()
        record = logging.LogRecord(
            name="controle_pedidos",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="order_reserved",
            args=(),
            exc_info=None,
        )
        record.order_id = 7
        parsed = json.loads(formatter.format(record))
        self.assertEqual(parsed.get("request_id"), "worker-req-123")
        self.assertEqual(parsed.get("message"), "order_reserved")
        self.assertEqual(parsed.get("order_id"), 7)

    def test_health_reports_database_and_http_metrics(self) -> None:
        self.client.get("/api/unknown")

        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        payload = response.get_json() or {}
        self.assertEqual(payload.get("status"), "ok")
        self.assertEqual(payload.get("db"), "sqlite")
        http = (payload.get("metrics") or {}).get("http") or {}
        self.assertGreaterEqual(int(http.get("requests_total", 0)), 1)


if __name__ == "__main__":
    unittest.main()
