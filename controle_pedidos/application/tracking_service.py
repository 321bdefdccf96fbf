from __future__ import annotations

from typing import Any, Dict, Tuple

from controle_pedidos.domain.contracts import Actor, ServiceOutput
from controle_pedidos.errors import NotFoundError, ValidationError
from controle_pedidos.formatting import parse_currency, parse_date, parse_int
from controle_pedidos.infrastructure.repositories import LitigationRepository, PeriodRepository, ShipmentRepository
from controle_pedidos.infrastructure.repositories.base import BaseRepository
from controle_pedidos.orders.status_pipeline import LITIGATION_INITIAL_STATUS, SHIPMENT_INITIAL_STATUS, normalize_status
from controle_pedidos.policies import require_admin
from controle_pedidos.ui_strings import success_message


class _PeriodScopedService:
    """Per-period records with their own free-choice status list.

    Subclasses describe their columns as (name, kind) pairs; kinds are
    text, int, money, date and status.
    """

    status_group = ""
    initial_status = ""
    fields: Tuple[Tuple[str, str], ...] = ()
    required_fields: Tuple[str, ...] = ()
    required_error = "validation_error"
    not_found_error = "not_found"
    message_prefix = ""
    payload_key = ""
    collection_key = ""

    def __init__(
        self,
        repository: BaseRepository,
        period_repository: PeriodRepository | None = None,
    ) -> None:
        self.repository = repository
        self.period_repository = period_repository or PeriodRepository()

    def list_for_period(self, db, period_id: int) -> ServiceOutput:
        self._require_period(db, period_id)
        return ServiceOutput(payload={self.collection_key: self.repository.list_by_period(db, period_id)})

    def create(self, db, *, actor: Actor, period_id: int, payload: Dict[str, Any]) -> ServiceOutput:
        self._require_period(db, period_id)
        values = self._values(payload, partial=False)
        values.setdefault("status", self.initial_status)
        values["period_id"] = period_id
        values["created_by"] = actor.user_id
        row_id = self.repository.insert(db, values)
        return ServiceOutput(
            payload={
                self.payload_key: self.repository.get_by_id(db, row_id),
                "message": success_message(f"{self.message_prefix}_created"),
            },
            status_code=201,
        )

    def update(self, db, *, row_id: int, payload: Dict[str, Any]) -> ServiceOutput:
        """Apply the fields present in ``payload``; required fields are checked on the merged row."""
        row = self._require(db, row_id)
        values = self._values(payload, partial=True)
        if not values:
            raise ValidationError(code="no_changes")
        self._check_required({**row, **values})
        self.repository.update_fields(db, row_id, values)
        return ServiceOutput(
            payload={
                self.payload_key: self.repository.get_by_id(db, row_id),
                "message": success_message(f"{self.message_prefix}_updated"),
            }
        )

    def delete(self, db, *, actor: Actor, row_id: int) -> ServiceOutput:
        require_admin(actor)
        self._require(db, row_id)
        self.repository.delete(db, row_id)
        return ServiceOutput(payload={"deleted": True, "message": success_message("deleted")})

    def _values(self, payload: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for name, kind in self.fields:
            if name not in payload:
                continue
            raw = payload.get(name)
            if kind == "int":
                values[name] = parse_int(raw, default=1)
            elif kind == "money":
                values[name] = parse_currency(raw)
            elif kind == "date":
                values[name] = parse_date(raw) if str(raw or "").strip() else None
            elif kind == "status":
                status = normalize_status(self.status_group, raw)
                if status is None:
                    raise ValidationError(code="status_invalid")
                values[name] = status
            else:
                values[name] = str(raw if raw is not None else "").strip()
        if not partial:
            self._check_required(values)
        return values

    def _check_required(self, values: Dict[str, Any]) -> None:
        if any(not str(values.get(name) or "").strip() for name in self.required_fields):
            raise ValidationError(code=self.required_error)

    def _require_period(self, db, period_id: int) -> None:
        if not self.period_repository.get_by_id(db, period_id):
            raise NotFoundError(code="period_not_found")

    def _require(self, db, row_id: int) -> dict:
        row = self.repository.get_by_id(db, row_id)
        if not row:
            raise NotFoundError(code=self.not_found_error)
        return row


class LitigationService(_PeriodScopedService):
    status_group = "litigation"
    initial_status = LITIGATION_INITIAL_STATUS
    fields = (
        ("case_number", "text"),
        ("client", "text"),
        ("lawyer", "text"),
        ("product", "text"),
        ("quantity", "int"),
        ("total_amount", "money"),
        ("date", "date"),
        ("status", "status"),
        ("notes", "text"),
    )
    required_fields = ("client", "product")
    required_error = "litigation_fields_required"
    not_found_error = "litigation_not_found"
    message_prefix = "litigation"
    payload_key = "litigation"
    collection_key = "litigations"

    def __init__(self, repository: LitigationRepository | None = None, **kwargs) -> None:
        super().__init__(repository or LitigationRepository(), **kwargs)


class ShipmentService(_PeriodScopedService):
    status_group = "shipment"
    initial_status = SHIPMENT_INITIAL_STATUS
    fields = (
        ("recipient_name", "text"),
        ("product", "text"),
        ("quantity", "int"),
        ("date", "date"),
        ("tracking_code", "text"),
        ("status", "status"),
    )
    required_fields = ("recipient_name", "product")
    required_error = "shipment_fields_required"
    not_found_error = "shipment_not_found"
    message_prefix = "shipment"
    payload_key = "shipment"
    collection_key = "shipments"

    def __init__(self, repository: ShipmentRepository | None = None, **kwargs) -> None:
        super().__init__(repository or ShipmentRepository(), **kwargs)
