from __future__ import annotations

from controle_pedidos.infrastructure.repositories.base import BaseRepository


class UserRepository(BaseRepository):
    table = "users"
    columns = ("name", "email", "password_hash", "role", "active", "created_by")
    bool_columns = ("active",)
    default_order = "name ASC, id ASC"

    def find_by_email(self, db, email: str) -> dict | None:
        row = db.execute(
            "SELECT * FROM users WHERE LOWER(email) = LOWER(?) LIMIT 1",
            (email,),
        ).fetchone()
        return self.row_to_dict(row)

    def email_exists(self, db, email: str, *, exclude_id: int | None = None) -> bool:
        row = self.find_by_email(db, email)
        if not row:
            return False
        return exclude_id is None or int(row["id"]) != int(exclude_id)

    @staticmethod
    def public_view(user: dict | None) -> dict | None:
        if user is None:
            return None
        return {key: value for key, value in user.items() if key != "password_hash"}
