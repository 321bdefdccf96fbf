from __future__ import annotations

from controle_pedidos.infrastructure.repositories.base import BaseRepository


class _OwnedRepository(BaseRepository):
    """Rows that belong to a single user; every lookup is filtered by owner."""

    def list_for_user(self, db, user_id: int) -> list[dict]:
        rows = db.execute(
            f"SELECT * FROM {self.table} WHERE user_id = ? ORDER BY {self.default_order}",
            (user_id,),
        ).fetchall()
        return self.rows_to_dicts(rows)

    def get_owned(self, db, row_id: int, user_id: int) -> dict | None:
        row = db.execute(
            f"SELECT * FROM {self.table} WHERE id = ? AND user_id = ? LIMIT 1",
            (row_id, user_id),
        ).fetchone()
        return self.row_to_dict(row)


class StickyNoteRepository(_OwnedRepository):
    table = "sticky_notes"
    columns = ("user_id", "content", "color", "pos_x", "pos_y", "width", "height", "priority")
    default_order = "created_at DESC, id DESC"


class TaskListRepository(_OwnedRepository):
    table = "task_lists"
    columns = ("user_id", "title", "color", "pos_x", "pos_y")
    default_order = "created_at DESC, id DESC"

    def delete_with_tasks(self, db, list_id: int) -> int:
        db.execute("DELETE FROM tasks WHERE list_id = ?", (list_id,))
        return self.delete(db, list_id)


class TaskRepository(_OwnedRepository):
    table = "tasks"
    columns = ("user_id", "list_id", "text", "done", "position")
    bool_columns = ("done",)
    default_order = "position ASC, id ASC"

    def next_position(self, db, list_id: int) -> int:
        row = db.execute(
            "SELECT MAX(position) AS top FROM tasks WHERE list_id = ?",
            (list_id,),
        ).fetchone()
        top = row["top"] if row else None
        return int(top or 0) + 1
