from __future__ import annotations

from controle_pedidos.infrastructure.repositories.base import BaseRepository


class PeriodRepository(BaseRepository):
    table = "periods"
    columns = ("name", "month", "year")
    default_order = "year DESC, month DESC, id DESC"

    def count(self, db) -> int:
        row = db.execute("SELECT COUNT(*) AS total FROM periods").fetchone()
        return int(row["total"] if row else 0)

    def latest(self, db) -> dict | None:
        row = db.execute(
            f"SELECT * FROM periods ORDER BY {self.default_order} LIMIT 1",
        ).fetchone()
        return self.row_to_dict(row)
