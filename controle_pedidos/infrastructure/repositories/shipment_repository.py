from __future__ import annotations

from controle_pedidos.infrastructure.repositories.base import BaseRepository


class ShipmentRepository(BaseRepository):
    table = "shipments"
    columns = (
        "period_id",
        "recipient_name",
        "product",
        "quantity",
        "date",
        "tracking_code",
        "status",
        "created_by",
    )
    default_order = "created_at DESC, id DESC"

    def list_by_period(self, db, period_id: int) -> list[dict]:
        rows = db.execute(
            f"SELECT * FROM shipments WHERE period_id = ? ORDER BY {self.default_order}",
            (period_id,),
        ).fetchall()
        return self.rows_to_dicts(rows)
