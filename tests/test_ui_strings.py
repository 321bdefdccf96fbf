import unittest

from controle_pedidos.ui_strings import (
    MESSAGES,
    STATUS_GROUPS,
    error_message,
    frontend_bundle,
    status_labels_for_group,
    success_message,
)


class UiStringsStatusGroupsTest(unittest.TestCase):
    def test_required_status_groups_exist(self) -> None:
        required_groups = {"order", "thc", "litigation", "shipment", "quote", "priority"}
        self.assertTrue(required_groups.issubset(set(STATUS_GROUPS.keys())))

    def test_status_labels_and_descriptions_are_not_empty(self) -> None:
        for group_name, statuses in STATUS_GROUPS.items():
            self.assertTrue(statuses, f"grupo vazio: {group_name}")
            for status in statuses:
                self.assertTrue((status.get("label") or "").strip(), f"label vazio em {group_name}:{status.get('key')}")
                self.assertTrue(
                    (status.get("description") or "").strip(),
                    f"descricao vazia em {group_name}:{status.get('key')}",
                )

    def test_order_labels_keep_spreadsheet_wording(self) -> None:
        labels = status_labels_for_group("order")
        self.assertEqual(labels["separating"], "Em Separação")
        self.assertEqual(labels["thc_2000"], "THC / 2000")
        self.assertEqual(labels["document_rejected"], "Doc. Recusado")
        self.assertEqual(list(labels)[0], "separating")


class UiStringsMessagesTest(unittest.TestCase):
    def test_messages_render_params(self) -> None:
        self.assertEqual(error_message("order_being_edited", holder="Ana"), "Pedido em edição por Ana.")
        self.assertEqual(success_message("orders_imported", count=3), "3 pedido(s) importado(s) com sucesso!")

    def test_missing_key_falls_back(self) -> None:
        self.assertEqual(error_message("nao_existe", "padrao"), "padrao")
        self.assertEqual(error_message("nao_existe"), "nao_existe")

    def test_bad_params_keep_template(self) -> None:
        self.assertEqual(error_message("order_being_edited"), MESSAGES["error"]["order_being_edited"])

    def test_frontend_bundle_exposes_groups_and_roles(self) -> None:
        bundle = frontend_bundle()
        self.assertIn("status_groups", bundle)
        self.assertEqual(bundle["roles"]["collaborator"], "Colaborador")


if __name__ == "__main__":
    unittest.main()
