from __future__ import annotations

from controle_pedidos.infrastructure.repositories.base import BaseRepository, contains_pattern


class OrderRepository(BaseRepository):
    table = "orders"
    columns = (
        "period_id",
        "order_number",
        "client",
        "doctor",
        "seller",
        "date",
        "product",
        "quantity",
        "total_amount",
        "tracking_code",
        "status",
        "thc_sub_status",
        "created_by",
    )
    default_order = "created_at DESC, id DESC"

    def list_by_period(self, db, period_id: int, *, search: str = "", status: str | None = None) -> list[dict]:
        clauses = ["period_id = ?"]
        params: list = [period_id]
        if status:
            clauses.append("status = ?")
            params.append(status)
        if search.strip():
            like = contains_pattern(search)
            clauses.append(
                "(LOWER(client) LIKE ? ESCAPE '!' OR LOWER(order_number) LIKE ? ESCAPE '!'"
                " OR LOWER(product) LIKE ? ESCAPE '!')"
            )
            params.extend([like, like, like])
        rows = db.execute(
            f"SELECT * FROM orders WHERE {' AND '.join(clauses)} ORDER BY {self.default_order}",
            tuple(params),
        ).fetchall()
        return self.rows_to_dicts(rows)

    def list_by_status(self, db, status: str, *, search: str = "") -> list[dict]:
        clauses = ["status = ?"]
        params: list = [status]
        if search.strip():
            like = contains_pattern(search)
            clauses.append(
                "(LOWER(client) LIKE ? ESCAPE '!' OR LOWER(order_number) LIKE ? ESCAPE '!'"
                " OR LOWER(product) LIKE ? ESCAPE '!' OR LOWER(seller) LIKE ? ESCAPE '!')"
            )
            params.extend([like, like, like, like])
        rows = db.execute(
            f"SELECT * FROM orders WHERE {' AND '.join(clauses)} ORDER BY {self.default_order}",
            tuple(params),
        ).fetchall()
        return self.rows_to_dicts(rows)

    def find_by_number(self, db, period_id: int, order_number: str) -> dict | None:
        row = db.execute(
            """
            SELECT *
            FROM orders
            WHERE period_id = ? AND UPPER(order_number) = UPPER(?)
            LIMIT 1
            """,
            (period_id, order_number),
        ).fetchone()
        return self.row_to_dict(row)

    def claim_lease(self, db, order_id: int, *, user_id: int, expires_at: str, now: str) -> bool:
        """Take the edit lease if nobody holds it, it expired, or the caller already has it."""
        cursor = db.execute(
            """
            UPDATE orders
            SET editing_by = ?, editing_expires_at = ?
            WHERE id = ?
              AND (
                editing_by IS NULL
                OR editing_by = ?
                OR editing_expires_at IS NULL
                OR editing_expires_at <= ?
              )
            """,
            (user_id, expires_at, order_id, user_id, now),
        )
        return int(cursor.rowcount or 0) == 1

    def renew_lease(self, db, order_id: int, *, user_id: int, expires_at: str, now: str) -> bool:
        cursor = db.execute(
            """
            UPDATE orders
            SET editing_expires_at = ?
            WHERE id = ? AND editing_by = ? AND editing_expires_at > ?
            """,
            (expires_at, order_id, user_id, now),
        )
        return int(cursor.rowcount or 0) == 1

    def release_lease(self, db, order_id: int, *, user_id: int | None = None) -> bool:
        if user_id is None:
            cursor = db.execute(
                "UPDATE orders SET editing_by = NULL, editing_expires_at = NULL WHERE id = ?",
                (order_id,),
            )
        else:
            cursor = db.execute(
                """
                UPDATE orders
                SET editing_by = NULL, editing_expires_at = NULL
                WHERE id = ? AND editing_by = ?
                """,
                (order_id, user_id),
            )
        return int(cursor.rowcount or 0) == 1

    def active_lease_for_user(self, db, user_id: int, *, now: str, exclude_id: int | None = None) -> dict | None:
        row = db.execute(
            """
            SELECT *
            FROM orders
            WHERE editing_by = ? AND editing_expires_at > ? AND id <> ?
            ORDER BY editing_expires_at DESC
            LIMIT 1
            """,
            (user_id, now, int(exclude_id or 0)),
        ).fetchone()
        return self.row_to_dict(row)
