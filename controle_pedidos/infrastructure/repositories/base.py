from __future__ import annotations

from typing import Any, Dict, Iterable, Tuple

from controle_pedidos.db import fetch_id


LIKE_ESCAPE = "!"


def contains_pattern(term: str) -> str:
    """Lowercased ``%term%`` with the LIKE wildcards in ``term`` taken literally (pair with ``ESCAPE '!'``)."""
    needle = str(term or "").strip().lower()
    for char in (LIKE_ESCAPE, "%", "_"):
        needle = needle.replace(char, LIKE_ESCAPE + char)
    return f"%{needle}%"


class BaseRepository:
    """Row access for one table. Subclasses name the table and its writable columns."""

    table: str = ""
    columns: Tuple[str, ...] = ()
    bool_columns: Tuple[str, ...] = ()
    default_order: str = "id DESC"

    def get_by_id(self, db, row_id: int) -> dict | None:
        row = db.execute(
            f"SELECT * FROM {self.table} WHERE id = ? LIMIT 1",
            (row_id,),
        ).fetchone()
        return self.row_to_dict(row)

    def list_all(self, db) -> list[dict]:
        rows = db.execute(f"SELECT * FROM {self.table} ORDER BY {self.default_order}").fetchall()
        return self.rows_to_dicts(rows)

    def insert(self, db, values: Dict[str, Any]) -> int:
        names = [name for name in values if name in self.columns]
        placeholders = ", ".join("?" for _ in names)
        cursor = db.execute(
            f"""
            INSERT INTO {self.table} ({", ".join(names)})
            VALUES ({placeholders})
            RETURNING id
            """,
            tuple(values[name] for name in names),
        )
        return fetch_id(cursor)

    def update_fields(self, db, row_id: int, values: Dict[str, Any], *, touch: bool = True) -> int:
        names = [name for name in values if name in self.columns]
        if not names:
            return 0
        assignments = [f"{name} = ?" for name in names]
        if touch:
            assignments.append("updated_at = CURRENT_TIMESTAMP")
        cursor = db.execute(
            f"UPDATE {self.table} SET {', '.join(assignments)} WHERE id = ?",
            (*(values[name] for name in names), row_id),
        )
        return int(cursor.rowcount or 0)

    def delete(self, db, row_id: int) -> int:
        cursor = db.execute(f"DELETE FROM {self.table} WHERE id = ?", (row_id,))
        return int(cursor.rowcount or 0)

    def row_to_dict(self, row: Any) -> dict | None:
        if row is None:
            return None
        data = dict(row)
        for name in self.bool_columns:
            if name in data and data[name] is not None:
                data[name] = bool(data[name])
        for key, value in data.items():
            if hasattr(value, "isoformat"):
                data[key] = value.isoformat(sep=" ") if hasattr(value, "hour") else value.isoformat()
        return data

    def rows_to_dicts(self, rows: Iterable[Any]) -> list[dict]:
        return [self.row_to_dict(row) for row in rows]
