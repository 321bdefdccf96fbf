from __future__ import annotations

from controle_pedidos.infrastructure.repositories.base import BaseRepository


class ChangeLogRepository(BaseRepository):
    table = "change_log"
    columns = ("entity", "entity_id", "action", "period_id", "actor_id")
    default_order = "id ASC"

    def list_after(self, db, cursor: int, *, limit: int = 200) -> list[dict]:
        rows = db.execute(
            "SELECT * FROM change_log WHERE id > ? ORDER BY id ASC LIMIT ?",
            (cursor, limit),
        ).fetchall()
        return self.rows_to_dicts(rows)

    def latest_id(self, db) -> int:
        row = db.execute("SELECT MAX(id) AS latest FROM change_log").fetchone()
        return int((row["latest"] if row else None) or 0)
