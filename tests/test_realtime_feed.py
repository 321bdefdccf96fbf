import unittest

from controle_pedidos.application.change_feed import ChangeFeedService
from controle_pedidos.db import close_db
from tests.helpers.api import build_temp_app, current_period_id, login
from tests.helpers.temp_db import TempDbSandbox


class RealtimeFeedApiTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="realtime_feed")
        self.app = build_temp_app(self._temp_db)
        self.client = self.app.test_client()
        login(self.client)
        self.period_id = current_period_id(self.client)

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def test_order_mutations_show_up_after_the_cursor(self) -> None:
        start = self.client.get("/api/realtime/changes").get_json()
        self.assertEqual(start["changes"], [])
        cursor = start["cursor"]

        reserved = self.client.post(f"/api/periods/{self.period_id}/orders/reserve", json={"order_number": "77"})
        order_id = reserved.get_json()["order"]["id"]
        self.client.patch(f"/api/orders/{order_id}", json={"field": "client", "value": "Ana"})

        feed = self.client.get(f"/api/realtime/changes?after={cursor}").get_json()
        self.assertEqual([change["action"] for change in feed["changes"]], ["reserved", "updated"])
        self.assertTrue(all(change["entity_id"] == order_id for change in feed["changes"]))
        self.assertEqual(feed["refetch"], ["orders", "thc"])
        self.assertGreater(feed["cursor"], cursor)

        idle = self.client.get(f"/api/realtime/changes?after={feed['cursor']}").get_json()
        self.assertEqual(idle["changes"], [])
        self.assertEqual(idle["refetch"], [])
        self.assertEqual(idle["cursor"], feed["cursor"])

    def test_failed_write_leaves_no_change_behind(self) -> None:
        cursor = self.client.get("/api/realtime/changes").get_json()["cursor"]
        self.client.post(f"/api/periods/{self.period_id}/orders/reserve", json={"order_number": "88"})
        self.client.post(f"/api/periods/{self.period_id}/orders/reserve", json={"order_number": "88"})

        feed = self.client.get(f"/api/realtime/changes?after={cursor}").get_json()
        self.assertEqual(len(feed["changes"]), 1)

    def test_client_error_report_is_public(self) -> None:
        anonymous = self.app.test_client()
        recoverable = anonymous.post(
            "/api/client-errors",
            json={"message": "Failed to execute 'removeChild' on 'Node'", "stack": "at x"},
        )
        self.assertEqual(recoverable.status_code, 200)
        self.assertEqual(recoverable.get_json()["kind"], "recoverable")
        self.assertEqual(recoverable.get_json()["action"], "reload")

        fatal = anonymous.post("/api/client-errors", json={"message": "undefined is not a function"})
        self.assertEqual(fatal.get_json()["kind"], "fatal")
        self.assertEqual(fatal.get_json()["action"], "clear_local_state")


class _FakeChangeLogRepository:
    def __init__(self, rows):
        self.rows = rows

    def latest_id(self, _db) -> int:
        return self.rows[-1]["id"] if self.rows else 0

    def list_after(self, _db, cursor: int, *, limit: int = 200):
        return [row for row in self.rows if row["id"] > cursor][:limit]


class ChangeFeedServiceTest(unittest.TestCase):
    def test_limit_moves_cursor_to_last_returned_row(self) -> None:
        rows = [{"id": idx, "entity": "order", "action": "updated"} for idx in range(1, 6)]
        service = ChangeFeedService(repository=_FakeChangeLogRepository(rows))

        page = service.changes_after(None, 1, limit=2).payload
        self.assertEqual([row["id"] for row in page["changes"]], [2, 3])
        self.assertEqual(page["cursor"], 3)

    def test_missing_cursor_returns_current_position(self) -> None:
        service = ChangeFeedService(repository=_FakeChangeLogRepository([{"id": 9, "entity": "order"}]))
        payload = service.changes_after(None, None).payload
        self.assertEqual(payload, {"cursor": 9, "changes": [], "refetch": []})


if __name__ == "__main__":
    unittest.main()
