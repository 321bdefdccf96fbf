from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List

from controle_pedidos.core.event_bus import (
    EventBus,
    OrderDeleted,
    OrderLeaseChanged,
    OrderReserved,
    OrdersImported,
    OrderUpdated,
    get_event_bus,
)
from controle_pedidos.csv_import import parse_orders_csv
from controle_pedidos.db import is_unique_violation
from controle_pedidos.domain.contracts import (
    Actor,
    OrderImportInput,
    OrderReserveInput,
    OrderUpdateInput,
    ServiceOutput,
)
from controle_pedidos.errors import ConflictError, NotFoundError, ValidationError
from controle_pedidos.errors import PermissionError as AppPermissionError
from controle_pedidos.formatting import parse_currency, parse_date, parse_int, today_sao_paulo
from controle_pedidos.infrastructure.repositories import OrderRepository, PeriodRepository, UserRepository
from controle_pedidos.observability import observe_csv_rows, observe_edit_lease_conflict
from controle_pedidos.orders.status_pipeline import (
    ORDER_FIELD_KINDS,
    ORDER_INITIAL_STATUS,
    ORDER_TERMINAL_STATUS,
    allowed_statuses,
    can_write_order_field,
    decorate_order,
    missing_fields_for_finish,
    normalize_status,
    summarize_statuses,
    summarize_thc,
)
from controle_pedidos.policies import require_admin
from controle_pedidos.ui_strings import get_ui_text, success_message


LEASE_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
DEFAULT_LEASE_SECONDS = 900

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def lease_stamp(moment: datetime) -> str:
    """Lease timestamps are fixed-width UTC strings so SQL can compare them as text."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(LEASE_TIMESTAMP_FORMAT)


class OrderService:
    def __init__(
        self,
        repository: OrderRepository | None = None,
        period_repository: PeriodRepository | None = None,
        user_repository: UserRepository | None = None,
        event_bus: EventBus | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.repository = repository or OrderRepository()
        self.period_repository = period_repository or PeriodRepository()
        self.user_repository = user_repository or UserRepository()
        self.event_bus = event_bus or get_event_bus()
        self.clock = clock or _utc_now
        self.logger = logging.getLogger("controle_pedidos.orders")

    # -- reads -------------------------------------------------------------

    def list_orders(self, db, *, period_id: int, search: str = "", status: str | None = None) -> ServiceOutput:
        self._require_period(db, period_id)
        status_key = None
        if status:
            status_key = normalize_status("order", status)
            if status_key is None:
                raise ValidationError(code="status_invalid")
        orders = self.repository.list_by_period(db, period_id, search=search or "", status=status_key)
        now = lease_stamp(self.clock())
        return ServiceOutput(payload={"orders": [self._present(order, now) for order in orders]})

    def order_stats(self, db, *, period_id: int) -> ServiceOutput:
        self._require_period(db, period_id)
        orders = self.repository.list_by_period(db, period_id)
        return ServiceOutput(payload=summarize_statuses(orders))

    def get_order(self, db, *, order_id: int) -> ServiceOutput:
        order = self._require_order(db, order_id)
        return ServiceOutput(payload={"order": self._present(order, lease_stamp(self.clock()))})

    def list_thc(self, db, *, search: str = "") -> ServiceOutput:
        orders = self.repository.list_by_status(db, ORDER_TERMINAL_STATUS, search=search or "")
        now = lease_stamp(self.clock())
        return ServiceOutput(payload={"orders": [self._present(order, now) for order in orders]})

    def thc_stats(self, db) -> ServiceOutput:
        orders = self.repository.list_by_status(db, ORDER_TERMINAL_STATUS)
        return ServiceOutput(payload=summarize_thc(orders))

    # -- reservation -------------------------------------------------------

    def reserve(
        self,
        db,
        *,
        actor: Actor,
        reserve_input: OrderReserveInput,
        lease_seconds: int = DEFAULT_LEASE_SECONDS,
    ) -> ServiceOutput:
        order_number = str(reserve_input.order_number or "").strip().upper()
        if not order_number:
            raise ValidationError(code="order_number_required")
        self._require_period(db, reserve_input.period_id)
        # Checked before the INSERT: under autocommit the new row would outlive the refusal.
        self._ensure_not_editing_elsewhere(db, actor=actor, now_stamp=lease_stamp(self.clock()))

        # Fast path only; the unique index below is what actually arbitrates.
        if self.repository.find_by_number(db, reserve_input.period_id, order_number):
            self.logger.info(
                "order_reservation_rejected",
                extra={"order_number": order_number, "period_id": reserve_input.period_id},
            )
            raise ConflictError(code="order_number_exists", message_params={"number": order_number})

        try:
            order_id = self.repository.insert(
                db,
                {
                    "period_id": reserve_input.period_id,
                    "order_number": order_number,
                    "date": today_sao_paulo(),
                    "quantity": 1,
                    "total_amount": 0,
                    "status": ORDER_INITIAL_STATUS,
                    "created_by": actor.user_id,
                },
            )
        except Exception as exc:
            if not is_unique_violation(exc):
                raise
            db.rollback()
            self.logger.warning(
                "order_reservation_conflict",
                extra={"order_number": order_number, "period_id": reserve_input.period_id},
            )
            raise ConflictError(code="order_number_taken", message_params={"number": order_number}) from exc

        try:
            lease = self._claim(db, actor=actor, order_id=order_id, lease_seconds=lease_seconds)
        except ConflictError:
            # Lost a race for another lease after the INSERT; drop the unheld row.
            self.repository.delete(db, order_id)
            raise
        self.event_bus.publish(
            OrderReserved(
                actor_id=actor.user_id,
                order_id=order_id,
                period_id=reserve_input.period_id,
                order_number=order_number,
            )
        )
        self.logger.info(
            "order_reserved",
            extra={"order_id": order_id, "order_number": order_number, "period_id": reserve_input.period_id},
        )
        order = self.repository.get_by_id(db, order_id)
        return ServiceOutput(
            payload={
                "order": self._present(order, lease_stamp(self.clock())),
                "lease": lease,
                "message": success_message("order_reserved", number=order_number),
            },
            status_code=201,
        )

    # -- edit lease --------------------------------------------------------

    def start_editing(
        self,
        db,
        *,
        actor: Actor,
        order_id: int,
        lease_seconds: int = DEFAULT_LEASE_SECONDS,
    ) -> ServiceOutput:
        order = self._require_order(db, order_id)
        lease = self._claim(db, actor=actor, order_id=order_id, lease_seconds=lease_seconds)
        self.event_bus.publish(
            OrderLeaseChanged(
                actor_id=actor.user_id,
                order_id=order_id,
                period_id=order.get("period_id"),
                holder_id=actor.user_id,
            )
        )
        return ServiceOutput(payload={"lease": lease})

    def renew_editing(
        self,
        db,
        *,
        actor: Actor,
        order_id: int,
        lease_seconds: int = DEFAULT_LEASE_SECONDS,
    ) -> ServiceOutput:
        self._require_order(db, order_id)
        now = self.clock()
        expires_at = lease_stamp(now + timedelta(seconds=max(1, int(lease_seconds))))
        renewed = self.repository.renew_lease(
            db,
            order_id,
            user_id=actor.user_id,
            expires_at=expires_at,
            now=lease_stamp(now),
        )
        if not renewed:
            observe_edit_lease_conflict("renew_without_lease")
            raise ConflictError(code="lease_not_held")
        return ServiceOutput(
            payload={"lease": {"order_id": order_id, "holder_id": actor.user_id, "expires_at": expires_at}}
        )

    def finish_editing(self, db, *, actor: Actor, order_id: int) -> ServiceOutput:
        order = self._require_order(db, order_id)
        if not self._holds_lease(order, actor, lease_stamp(self.clock())):
            raise ConflictError(code="lease_not_held")
        missing = missing_fields_for_finish(order)
        if missing:
            # The lease stays with the caller until the order is complete.
            raise ValidationError(code="order_incomplete", payload={"missing_fields": missing})
        self.repository.release_lease(db, order_id, user_id=actor.user_id)
        self.event_bus.publish(
            OrderLeaseChanged(actor_id=actor.user_id, order_id=order_id, period_id=order.get("period_id"))
        )
        self.logger.info("order_lease_released", extra={"order_id": order_id, "reason": "finished"})
        refreshed = self.repository.get_by_id(db, order_id)
        return ServiceOutput(
            payload={
                "order": self._present(refreshed, lease_stamp(self.clock())),
                "message": success_message("order_saved"),
            }
        )

    def cancel_editing(self, db, *, actor: Actor, order_id: int) -> ServiceOutput:
        """Drop the caller's lease. Field writes already made stay persisted."""
        order = self._require_order(db, order_id)
        released = self.repository.release_lease(db, order_id, user_id=actor.user_id)
        if released:
            self.event_bus.publish(
                OrderLeaseChanged(actor_id=actor.user_id, order_id=order_id, period_id=order.get("period_id"))
            )
            self.logger.info("order_lease_released", extra={"order_id": order_id, "reason": "cancelled"})
        return ServiceOutput(payload={"released": released, "message": success_message("edit_cancelled")})

    # -- writes ------------------------------------------------------------

    def update_fields(
        self,
        db,
        *,
        actor: Actor,
        update_input: OrderUpdateInput,
        lease_seconds: int = DEFAULT_LEASE_SECONDS,
    ) -> ServiceOutput:
        fields = dict(update_input.fields or {})
        if not fields:
            raise ValidationError(code="no_changes")
        order = self._require_order(db, update_input.order_id)
        now = self.clock()
        holds_lease = self._holds_lease(order, actor, lease_stamp(now))

        for name in fields:
            if name not in ORDER_FIELD_KINDS:
                raise ValidationError(code="field_unknown", message_params={"field": name})
            if not can_write_order_field(actor.role, name, holds_lease):
                observe_edit_lease_conflict("field_without_lease")
                raise AppPermissionError(code="field_permission_denied", payload={"field": name})

        values = {name: self._coerce(db, order, name, value) for name, value in fields.items()}
        try:
            self.repository.update_fields(db, order["id"], values)
        except Exception as exc:
            if not is_unique_violation(exc):
                raise
            db.rollback()
            raise ConflictError(
                code="order_number_exists",
                message_params={"number": values.get("order_number", "")},
            ) from exc

        if holds_lease:
            self.repository.renew_lease(
                db,
                order["id"],
                user_id=actor.user_id,
                expires_at=lease_stamp(now + timedelta(seconds=max(1, int(lease_seconds)))),
                now=lease_stamp(now),
            )
        self.event_bus.publish(
            OrderUpdated(
                actor_id=actor.user_id,
                order_id=order["id"],
                period_id=order.get("period_id"),
                fields=tuple(sorted(values)),
            )
        )
        refreshed = self.repository.get_by_id(db, order["id"])
        return ServiceOutput(
            payload={
                "order": self._present(refreshed, lease_stamp(self.clock())),
                "message": success_message("order_updated"),
            }
        )

    def delete_order(self, db, *, actor: Actor, order_id: int) -> ServiceOutput:
        require_admin(actor)
        order = self._require_order(db, order_id)
        self.repository.delete(db, order_id)
        self.event_bus.publish(
            OrderDeleted(actor_id=actor.user_id, order_id=order_id, period_id=order.get("period_id"))
        )
        self.logger.info("order_deleted", extra={"order_id": order_id})
        return ServiceOutput(payload={"deleted": True, "message": success_message("deleted")})

    # -- import ------------------------------------------------------------

    def import_orders(self, db, *, actor: Actor, import_input: OrderImportInput) -> ServiceOutput:
        self._require_period(db, import_input.period_id)
        rows, errors = parse_orders_csv(import_input.csv_text)
        if import_input.dry_run:
            return ServiceOutput(payload={"valid_rows": rows, "errors": errors})

        imported = 0
        skipped: List[str] = []
        for row in rows:
            number = row["order_number"]
            if self.repository.find_by_number(db, import_input.period_id, number):
                skipped.append(get_ui_text("import.skipped_existing_order").format(number=number))
                continue
            try:
                self.repository.insert(
                    db,
                    dict(row, period_id=import_input.period_id, created_by=actor.user_id),
                )
            except Exception as exc:
                # Relies on the connection modes from db._connect_database: psycopg2 runs in
                # autocommit and sqlite aborts only the failing statement, so earlier rows stay.
                if not is_unique_violation(exc):
                    raise
                skipped.append(get_ui_text("import.skipped_existing_order").format(number=number))
                continue
            imported += 1

        observe_csv_rows("orders", "imported", imported)
        observe_csv_rows("orders", "skipped", len(skipped))
        observe_csv_rows("orders", "rejected", len(errors))
        if imported:
            self.event_bus.publish(
                OrdersImported(
                    actor_id=actor.user_id,
                    order_id=None,
                    period_id=import_input.period_id,
                    imported=imported,
                )
            )
        self.logger.info(
            "csv_import_finished",
            extra={
                "kind": "orders",
                "period_id": import_input.period_id,
                "imported": imported,
                "skipped": len(skipped),
                "rejected": len(errors),
            },
        )
        return ServiceOutput(
            payload={
                "imported": imported,
                "skipped": skipped,
                "errors": errors,
                "message": success_message("orders_imported", count=imported),
            }
        )

    # -- helpers -----------------------------------------------------------

    def _ensure_not_editing_elsewhere(self, db, *, actor: Actor, now_stamp: str, order_id: int | None = None) -> None:
        current = self.repository.active_lease_for_user(db, actor.user_id, now=now_stamp, exclude_id=order_id)
        if current:
            observe_edit_lease_conflict("already_editing")
            self.logger.info(
                "order_lease_denied",
                extra={"order_id": order_id, "editing_order_id": current["id"], "reason": "already_editing"},
            )
            raise ConflictError(
                code="finish_current_edit_first",
                payload={"editing_order_id": current["id"], "editing_order_number": current.get("order_number")},
            )

    def _claim(self, db, *, actor: Actor, order_id: int, lease_seconds: int) -> Dict[str, Any]:
        now = self.clock()
        now_stamp = lease_stamp(now)
        self._ensure_not_editing_elsewhere(db, actor=actor, now_stamp=now_stamp, order_id=order_id)

        expires_at = lease_stamp(now + timedelta(seconds=max(1, int(lease_seconds))))
        claimed = self.repository.claim_lease(
            db,
            order_id,
            user_id=actor.user_id,
            expires_at=expires_at,
            now=now_stamp,
        )
        if not claimed:
            order = self.repository.get_by_id(db, order_id) or {}
            holder = self.user_repository.get_by_id(db, int(order.get("editing_by") or 0)) or {}
            holder_name = holder.get("name") or holder.get("email") or "?"
            observe_edit_lease_conflict("held_by_other")
            self.logger.info(
                "order_lease_denied",
                extra={"order_id": order_id, "holder_id": order.get("editing_by"), "reason": "held_by_other"},
            )
            raise ConflictError(
                code="order_being_edited",
                message_params={"holder": holder_name},
                payload={"holder_id": order.get("editing_by"), "expires_at": order.get("editing_expires_at")},
            )

        self.logger.info("order_lease_acquired", extra={"order_id": order_id, "expires_at": expires_at})
        return {"order_id": order_id, "holder_id": actor.user_id, "expires_at": expires_at}

    @staticmethod
    def _holds_lease(order: dict, actor: Actor, now_stamp: str) -> bool:
        holder = order.get("editing_by")
        expires_at = str(order.get("editing_expires_at") or "")
        return holder is not None and int(holder) == actor.user_id and expires_at > now_stamp

    def _coerce(self, db, order: dict, name: str, value: Any) -> Any:
        kind = ORDER_FIELD_KINDS[name]
        if kind == "order_number":
            number = str(value or "").strip().upper()
            if not number:
                raise ValidationError(code="order_number_required")
            existing = self.repository.find_by_number(db, order["period_id"], number)
            if existing and int(existing["id"]) != int(order["id"]):
                raise ConflictError(code="order_number_exists", message_params={"number": number})
            return number
        if kind == "text":
            return str(value if value is not None else "").strip()
        if kind == "date":
            if value is None or not str(value).strip():
                return None
            return parse_date(str(value))
        if kind == "int":
            return parse_int(value, default=1)
        if kind == "money":
            return parse_currency(value)
        if kind == "status":
            status = normalize_status("order", value)
            if status is None:
                raise ValidationError(code="status_invalid", payload={"allowed": allowed_statuses("order")})
            return status
        if kind == "thc_status":
            if value is None or not str(value).strip():
                return None
            sub_status = str(value).strip()
            if sub_status not in allowed_statuses("thc"):
                raise ValidationError(code="thc_status_invalid", payload={"allowed": allowed_statuses("thc")})
            return sub_status
        return value

    def _present(self, order: dict, now_stamp: str) -> dict:
        presented = decorate_order(order)
        presented["editing_active"] = bool(
            order.get("editing_by") is not None and str(order.get("editing_expires_at") or "") > now_stamp
        )
        return presented

    def _require_period(self, db, period_id: int) -> dict:
        period = self.period_repository.get_by_id(db, period_id)
        if not period:
            raise NotFoundError(code="period_not_found")
        return period

    def _require_order(self, db, order_id: int) -> dict:
        order = self.repository.get_by_id(db, order_id)
        if not order:
            raise NotFoundError(code="order_not_found")
        return order
