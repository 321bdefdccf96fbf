from __future__ import annotations

from typing import Iterable

from controle_pedidos.infrastructure.repositories.base import BaseRepository


class QuoteRepository(BaseRepository):
    table = "quotes"
    columns = (
        "number",
        "date",
        "client_id",
        "client_name",
        "company_name",
        "company_address",
        "company_city",
        "company_phone",
        "company_email",
        "notes",
        "total_amount",
        "status",
        "created_by",
    )
    default_order = "created_at DESC, id DESC"

    def numbers_with_prefix(self, db, prefix: str) -> list[str]:
        rows = db.execute(
            "SELECT number FROM quotes WHERE number LIKE ?",
            (f"{prefix}%",),
        ).fetchall()
        return [str(row["number"]) for row in rows]

    def number_exists(self, db, number: str, *, exclude_id: int | None = None) -> bool:
        row = db.execute(
            "SELECT id FROM quotes WHERE number = ? AND id <> ? LIMIT 1",
            (number, int(exclude_id or 0)),
        ).fetchone()
        return row is not None

    def list_items(self, db, quote_id: int) -> list[dict]:
        rows = db.execute(
            """
            SELECT id, quote_id, line_no, description, quantity, unit_price, line_total
            FROM quote_items
            WHERE quote_id = ?
            ORDER BY line_no ASC, id ASC
            """,
            (quote_id,),
        ).fetchall()
        return self.rows_to_dicts(rows)

    def replace_items(self, db, quote_id: int, items: Iterable[dict]) -> None:
        db.execute("DELETE FROM quote_items WHERE quote_id = ?", (quote_id,))
        for line_no, item in enumerate(items, start=1):
            db.execute(
                """
                INSERT INTO quote_items (quote_id, line_no, description, quantity, unit_price, line_total)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    quote_id,
                    line_no,
                    item["description"],
                    item["quantity"],
                    item["unit_price"],
                    item["line_total"],
                ),
            )

    def delete_with_items(self, db, quote_id: int) -> int:
        db.execute("DELETE FROM quote_items WHERE quote_id = ?", (quote_id,))
        return self.delete(db, quote_id)
