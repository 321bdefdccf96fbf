import unittest
from datetime import datetime, timezone

from werkzeug.security import generate_password_hash

from controle_pedidos.application.auth_service import AuthService
from controle_pedidos.application.order_service import OrderService
from controle_pedidos.application.quote_service import QuoteService
from controle_pedidos.application.seller_service import SellerService
from controle_pedidos.core import EventBus, OrderReserved
from controle_pedidos.domain.contracts import Actor, AuthLoginInput, OrderReserveInput
from controle_pedidos.errors import ConflictError, ValidationError


_NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


class _FakeUserRepo:
    def __init__(self, users=None) -> None:
        self._users = {user["id"]: user for user in (users or [])}

    def find_by_email(self, _db, email: str):
        for user in self._users.values():
            if user["email"] == email:
                return user
        return None

    def get_by_id(self, _db, user_id: int):
        return self._users.get(user_id)


class _FakePeriodRepo:
    def get_by_id(self, _db, period_id: int):
        return {"id": period_id, "name": "Março 2025"} if period_id == 1 else None


class _FakeOrderRepo:
    def __init__(self) -> None:
        self.rows = {}
        self.claim_result = True

    def find_by_number(self, _db, period_id: int, number: str):
        for row in self.rows.values():
            if row["period_id"] == period_id and row["order_number"].upper() == number.upper():
                return row
        return None

    def insert(self, _db, values: dict) -> int:
        row_id = len(self.rows) + 1
        self.rows[row_id] = dict(values, id=row_id, editing_by=None, editing_expires_at=None)
        return row_id

    def get_by_id(self, _db, row_id: int):
        return self.rows.get(row_id)

    def active_lease_for_user(self, _db, user_id: int, *, now: str, exclude_id: int | None = None):
        for row in self.rows.values():
            if row["id"] == exclude_id:
                continue
            if row.get("editing_by") == user_id and str(row.get("editing_expires_at") or "") > now:
                return row
        return None

    def delete(self, _db, row_id: int) -> int:
        return 1 if self.rows.pop(row_id, None) else 0

    def claim_lease(self, _db, row_id: int, *, user_id: int, expires_at: str, now: str) -> bool:
        if not self.claim_result:
            return False
        self.rows[row_id].update(editing_by=user_id, editing_expires_at=expires_at)
        return True


class _FakeQuoteRepo:
    def __init__(self, numbers) -> None:
        self._numbers = list(numbers)

    def numbers_with_prefix(self, _db, prefix: str):
        return [number for number in self._numbers if number.startswith(prefix)]


class _FakeSellerRepo:
    def __init__(self, sellers) -> None:
        self._sellers = sellers

    def find_by_name(self, _db, name: str):
        for seller in self._sellers:
            if seller["name"].lower() == name.lower():
                return seller
        return None

    def search_active(self, _db, term: str, *, limit: int):
        matches = [s for s in self._sellers if s["active"] and term.lower() in s["name"].lower()]
        return matches[:limit]


class ApplicationServicesTest(unittest.TestCase):
    def test_auth_service_login_checks_password_and_active_flag(self) -> None:
        repo = _FakeUserRepo(
            [
                {"id": 1, "name": "Ana", "email": "ana@empresa.com", "role": "ADMIN", "active": True,
                 "password_hash": generate_password_hash("segredo")},
                {"id": 2, "name": "Beto", "email": "beto@empresa.com", "role": "collaborator", "active": False,
                 "password_hash": generate_password_hash("segredo")},
            ]
        )
        service = AuthService(repository=repo)

        user = service.login(None, AuthLoginInput(email=" Ana@Empresa.com ", password="segredo"))
        self.assertIsNotNone(user)
        self.assertEqual(user.id, 1)
        self.assertEqual(user.role, "admin")

        self.assertIsNone(service.login(None, AuthLoginInput(email="ana@empresa.com", password="errada")))
        self.assertIsNone(service.login(None, AuthLoginInput(email="beto@empresa.com", password="segredo")))

    def test_quote_numbers_continue_after_highest_suffix(self) -> None:
        repo = _FakeQuoteRepo(["ORC202503001", "ORC202503009", "ORC202503abc", "ORC202502040"])
        service = QuoteService(repository=repo, clock=lambda: _NOW)
        self.assertEqual(service.next_number(None), "ORC202503010")

        empty = QuoteService(repository=_FakeQuoteRepo([]), clock=lambda: _NOW)
        self.assertEqual(empty.next_number(None), "ORC202503001")

    def test_seller_resolve_skips_inactive_exact_match(self) -> None:
        repo = _FakeSellerRepo(
            [
                {"id": 1, "name": "Ana", "active": False},
                {"id": 2, "name": "Ana Paula", "active": True},
            ]
        )
        service = SellerService(repository=repo)
        self.assertEqual(service.resolve(None, "ana").payload["seller"]["id"], 2)
        self.assertIsNone(service.resolve(None, "  ").payload["seller"])

    def test_order_reserve_publishes_event_and_claims_lease(self) -> None:
        bus = EventBus()
        received = []
        bus.subscribe(OrderReserved, received.append)
        orders = _FakeOrderRepo()
        service = OrderService(
            repository=orders,
            period_repository=_FakePeriodRepo(),
            user_repository=_FakeUserRepo(),
            event_bus=bus,
            clock=lambda: _NOW,
        )

        result = service.reserve(
            None,
            actor=Actor(user_id=5, role="collaborator"),
            reserve_input=OrderReserveInput(period_id=1, order_number="x-9"),
            lease_seconds=60,
        )

        self.assertEqual(result.status_code, 201)
        self.assertEqual(result.payload["lease"]["expires_at"], "2025-03-10T12:01:00Z")
        self.assertTrue(result.payload["order"]["editing_active"])
        self.assertEqual(len(received), 1)
        self.assertEqual(received[0].order_number, "X-9")
        self.assertEqual(received[0].actor_id, 5)

        with self.assertRaises(ConflictError) as ctx:
            service.reserve(
                None,
                actor=Actor(user_id=6, role="collaborator"),
                reserve_input=OrderReserveInput(period_id=1, order_number="X-9"),
            )
        self.assertEqual(ctx.exception.code, "order_number_exists")

        with self.assertRaises(ValidationError):
            service.reserve(
                None,
                actor=Actor(user_id=6, role="collaborator"),
                reserve_input=OrderReserveInput(period_id=1, order_number=" "),
            )

    def test_order_reserve_drops_row_when_lease_is_lost(self) -> None:
        orders = _FakeOrderRepo()
        orders.claim_result = False
        service = OrderService(
            repository=orders,
            period_repository=_FakePeriodRepo(),
            user_repository=_FakeUserRepo(),
            event_bus=EventBus(),
            clock=lambda: _NOW,
        )

        with self.assertRaises(ConflictError):
            service.reserve(
                None,
                actor=Actor(user_id=5, role="collaborator"),
                reserve_input=OrderReserveInput(period_id=1, order_number="77"),
            )
        self.assertEqual(orders.rows, {})

    def test_order_lease_conflict_names_the_holder(self) -> None:
        orders = _FakeOrderRepo()
        order_id = orders.insert(None, {"period_id": 1, "order_number": "10"})
        orders.rows[order_id].update(editing_by=3, editing_expires_at="2025-03-10T12:10:00Z")
        orders.claim_result = False
        service = OrderService(
            repository=orders,
            period_repository=_FakePeriodRepo(),
            user_repository=_FakeUserRepo([{"id": 3, "name": "Carla", "email": "carla@empresa.com"}]),
            event_bus=EventBus(),
            clock=lambda: _NOW,
        )

        with self.assertRaises(ConflictError) as ctx:
            service.start_editing(None, actor=Actor(user_id=4, role="admin"), order_id=order_id)
        self.assertEqual(ctx.exception.code, "order_being_edited")
        self.assertEqual(ctx.exception.user_message(), "Pedido em edição por Carla.")
        self.assertEqual(ctx.exception.payload["holder_id"], 3)


if __name__ == "__main__":
    unittest.main()
