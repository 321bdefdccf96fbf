from __future__ import annotations

from typing import List

from flask import has_app_context

from controle_pedidos.core.event_bus import EventBus, OrderChanged
from controle_pedidos.db import get_db
from controle_pedidos.domain.contracts import ServiceOutput
from controle_pedidos.infrastructure.repositories import ChangeLogRepository


ORDER_REFETCH_TARGETS = ("orders", "thc")
_REPOSITORY = ChangeLogRepository()


def record_order_change(event: OrderChanged) -> None:
    """Bus subscriber: append the change to change_log inside the caller's transaction."""
    if not has_app_context():
        return
    _REPOSITORY.insert(
        get_db(),
        {
            "entity": "order",
            "entity_id": event.order_id,
            "action": event.action,
            "period_id": event.period_id,
            "actor_id": event.actor_id,
        },
    )


def register_change_feed(bus: EventBus) -> None:
    bus.subscribe(OrderChanged, record_order_change)


class ChangeFeedService:
    def __init__(self, repository: ChangeLogRepository | None = None) -> None:
        self.repository = repository or _REPOSITORY

    def changes_after(self, db, cursor: int | None, *, limit: int = 200) -> ServiceOutput:
        """Without a cursor the caller only learns where "now" is; it already has fresh lists."""
        if cursor is None or cursor < 0:
            return ServiceOutput(payload={"cursor": self.repository.latest_id(db), "changes": [], "refetch": []})
        changes = self.repository.list_after(db, cursor, limit=limit)
        next_cursor = int(changes[-1]["id"]) if changes else int(cursor)
        refetch: List[str] = []
        if any(change["entity"] == "order" for change in changes):
            refetch = list(ORDER_REFETCH_TARGETS)
        return ServiceOutput(payload={"cursor": next_cursor, "changes": changes, "refetch": refetch})
