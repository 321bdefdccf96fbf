from __future__ import annotations

from controle_pedidos.infrastructure.repositories.base import BaseRepository, contains_pattern


class SellerRepository(BaseRepository):
    table = "sellers"
    columns = ("name", "active")
    bool_columns = ("active",)
    default_order = "name ASC, id ASC"

    def list_filtered(self, db, *, active_only: bool = False) -> list[dict]:
        if active_only:
            rows = db.execute(
                f"SELECT * FROM sellers WHERE active = ? ORDER BY {self.default_order}",
                (True,),
            ).fetchall()
        else:
            rows = db.execute(f"SELECT * FROM sellers ORDER BY {self.default_order}").fetchall()
        return self.rows_to_dicts(rows)

    def find_by_name(self, db, name: str) -> dict | None:
        row = db.execute(
            "SELECT * FROM sellers WHERE UPPER(name) = UPPER(?) ORDER BY id LIMIT 1",
            (name,),
        ).fetchone()
        return self.row_to_dict(row)

    def search_active(self, db, term: str, *, limit: int = 10) -> list[dict]:
        rows = db.execute(
            f"""
            SELECT *
            FROM sellers
            WHERE active = ? AND LOWER(name) LIKE ? ESCAPE '!'
            ORDER BY {self.default_order}
            LIMIT ?
            """,
            (True, contains_pattern(term), limit),
        ).fetchall()
        return self.rows_to_dicts(rows)
