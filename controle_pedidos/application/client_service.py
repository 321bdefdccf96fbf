from __future__ import annotations

from typing import Any, Dict

from controle_pedidos.domain.contracts import ServiceOutput
from controle_pedidos.errors import ConflictError, NotFoundError, ValidationError
from controle_pedidos.infrastructure.repositories import ClientRepository
from controle_pedidos.ui_strings import success_message


_TEXT_FIELDS = ("legal_name", "cnpj", "address", "city", "state", "zip_code", "phone", "email", "contact")


class ClientService:
    def __init__(self, repository: ClientRepository | None = None) -> None:
        self.repository = repository or ClientRepository()

    def list_clients(self, db, *, search: str | None = None) -> ServiceOutput:
        return ServiceOutput(payload={"clients": self.repository.search(db, search)})

    def get_client(self, db, client_id: int) -> ServiceOutput:
        return ServiceOutput(payload={"client": self._require(db, client_id)})

    def create_client(self, db, payload: Dict[str, Any]) -> ServiceOutput:
        values = self._values(payload, partial=False)
        values.setdefault("active", True)
        client_id = self.repository.insert(db, values)
        return ServiceOutput(
            payload={"client": self.repository.get_by_id(db, client_id), "message": success_message("client_created")},
            status_code=201,
        )

    def update_client(self, db, client_id: int, payload: Dict[str, Any]) -> ServiceOutput:
        self._require(db, client_id)
        values = self._values(payload, partial=True)
        if not values:
            raise ValidationError(code="no_changes")
        self.repository.update_fields(db, client_id, values)
        return ServiceOutput(
            payload={"client": self.repository.get_by_id(db, client_id), "message": success_message("client_updated")}
        )

    def delete_client(self, db, client_id: int) -> ServiceOutput:
        self._require(db, client_id)
        if self.repository.has_quotes(db, client_id):
            raise ConflictError(code="client_has_quotes")
        self.repository.delete(db, client_id)
        return ServiceOutput(payload={"deleted": True, "message": success_message("deleted")})

    @staticmethod
    def _values(payload: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for name in _TEXT_FIELDS:
            if name in payload:
                values[name] = str(payload.get(name) or "").strip()
        if "active" in payload:
            values["active"] = bool(payload.get("active"))
        if "state" in values:
            values["state"] = values["state"].upper()
        if (not partial or "legal_name" in values) and not values.get("legal_name"):
            raise ValidationError(code="client_name_required")
        return values

    def _require(self, db, client_id: int) -> dict:
        client = self.repository.get_by_id(db, client_id)
        if not client:
            raise NotFoundError(code="client_not_found")
        return client
