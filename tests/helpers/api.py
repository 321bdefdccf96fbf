from __future__ import annotations

from controle_pedidos import create_app
from controle_pedidos.config import Config
from controle_pedidos.core import reset_event_bus_for_tests
from controle_pedidos.observability import reset_metrics_for_tests
from controle_pedidos.security import reset_rate_limiter_for_tests
from tests.helpers.temp_db import TempDbSandbox


ADMIN_EMAIL = "admin@sistema.com"
ADMIN_PASSWORD = "admin123"


def build_temp_app(temp_db: TempDbSandbox, **overrides):
    reset_event_bus_for_tests()
    reset_metrics_for_tests()
    reset_rate_limiter_for_tests()
    attrs = {
        "DEFAULT_ADMIN_EMAIL": ADMIN_EMAIL,
        "DEFAULT_ADMIN_PASSWORD": ADMIN_PASSWORD,
        "DEFAULT_ADMIN_NAME": "Administrador",
        "PROPAGATE_EXCEPTIONS": False,
    }
    attrs.update(overrides)
    return create_app(temp_db.make_config(Config, **attrs))


def login(client, email: str = ADMIN_EMAIL, password: str = ADMIN_PASSWORD) -> dict:
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    if response.status_code != 200:
        raise AssertionError(f"login failed for {email}: {response.get_json()}")
    return response.get_json()["user"]


def create_collaborator(admin_client, app, *, name: str, email: str, password: str = "senha123"):
    response = admin_client.post(
        "/api/users",
        json={"name": name, "email": email, "password": password, "role": "collaborator"},
    )
    if response.status_code != 201:
        raise AssertionError(f"could not create {email}: {response.get_json()}")
    client = app.test_client()
    login(client, email, password)
    return client


def current_period_id(client) -> int:
    response = client.get("/api/periods")
    return int(response.get_json()["periods"][0]["id"])
