import io
import unittest

from controle_pedidos.db import close_db
from tests.helpers.api import build_temp_app, current_period_id, login
from tests.helpers.temp_db import TempDbSandbox


_CSV = (
    "nr_pedido;cliente;medico;vendedor;data;produto;qtd;total;rastreio;status\n"
    "100;Ana;Dr. Luiz;Carlos;10/01/2025;Gotas;2;300,00;;Em Separação\n"
    "101;Bia;;;;Óleo;1;150,50;BR1;THC / 2000\n"
    "102;;;;;Óleo;1;0;;\n"
)


class OrderImportApiTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="order_import")
        self.app = build_temp_app(self._temp_db)
        self.client = self.app.test_client()
        login(self.client)
        self.period_id = current_period_id(self.client)

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def test_dry_run_previews_without_writing(self) -> None:
        response = self.client.post(
            f"/api/periods/{self.period_id}/orders/import?dry_run=1",
            json={"csv": _CSV},
        )
        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual([row["order_number"] for row in payload["valid_rows"]], ["100", "101"])
        self.assertEqual(payload["errors"], ["Linha 4: cliente é obrigatório"])

        listed = self.client.get(f"/api/periods/{self.period_id}/orders").get_json()["orders"]
        self.assertEqual(listed, [])

    def test_multipart_import_skips_existing_numbers(self) -> None:
        self.client.post(f"/api/periods/{self.period_id}/orders/reserve", json={"order_number": "100"})

        response = self.client.post(
            f"/api/periods/{self.period_id}/orders/import",
            data={"file": (io.BytesIO(_CSV.encode("utf-8")), "pedidos.csv")},
            content_type="multipart/form-data",
        )
        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual(payload["imported"], 1)
        self.assertEqual(payload["skipped"], ["Pedido 100 já existe - ignorado"])
        self.assertEqual(len(payload["errors"]), 1)

        thc = self.client.get("/api/orders/thc").get_json()["orders"]
        self.assertEqual([order["order_number"] for order in thc], ["101"])
        self.assertEqual(thc[0]["total_amount"], 150.5)

    def test_windows_encoded_upload_is_decoded(self) -> None:
        text = "nr_pedido;cliente;produto\n300;João;Óleo\n"
        response = self.client.post(
            f"/api/periods/{self.period_id}/orders/import",
            data=text.encode("cp1252"),
            content_type="text/csv",
        )
        self.assertEqual(response.status_code, 200)
        listed = self.client.get(f"/api/periods/{self.period_id}/orders").get_json()["orders"]
        self.assertEqual(listed[0]["client"], "João")

    def test_empty_upload_and_size_limit(self) -> None:
        empty = self.client.post(f"/api/periods/{self.period_id}/orders/import", data=b"", content_type="text/csv")
        self.assertEqual(empty.status_code, 400)
        self.assertEqual(empty.get_json()["error"], "csv_file_required")

        self.app.config["CSV_MAX_BYTES"] = 10
        too_big = self.client.post(f"/api/periods/{self.period_id}/orders/import", json={"csv": _CSV})
        self.assertEqual(too_big.status_code, 413)
        self.assertEqual(too_big.get_json()["error"], "csv_too_large")

    def test_template_download(self) -> None:
        response = self.client.get("/api/orders/import-template")
        self.assertEqual(response.status_code, 200)
        self.assertIn("modelo_importacao_pedidos.csv", response.headers["Content-Disposition"])
        body = response.get_data()
        self.assertTrue(body.startswith("\ufeff".encode("utf-8")))
        self.assertIn("nr_pedido;cliente".encode("utf-8"), body)


if __name__ == "__main__":
    unittest.main()
