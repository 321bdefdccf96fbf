from __future__ import annotations

from controle_pedidos.infrastructure.repositories.base import BaseRepository


class LitigationRepository(BaseRepository):
    table = "litigations"
    columns = (
        "period_id",
        "case_number",
        "client",
        "lawyer",
        "product",
        "quantity",
        "total_amount",
        "date",
        "status",
        "notes",
        "created_by",
    )
    default_order = "created_at DESC, id DESC"

    def list_by_period(self, db, period_id: int) -> list[dict]:
        rows = db.execute(
            f"SELECT * FROM litigations WHERE period_id = ? ORDER BY {self.default_order}",
            (period_id,),
        ).fetchall()
        return self.rows_to_dicts(rows)
