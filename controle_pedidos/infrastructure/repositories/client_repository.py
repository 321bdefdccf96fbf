from __future__ import annotations

from controle_pedidos.infrastructure.repositories.base import BaseRepository, contains_pattern


class ClientRepository(BaseRepository):
    table = "clients"
    columns = (
        "legal_name",
        "cnpj",
        "address",
        "city",
        "state",
        "zip_code",
        "phone",
        "email",
        "contact",
        "active",
    )
    bool_columns = ("active",)
    default_order = "legal_name ASC, id ASC"

    def search(self, db, term: str | None = None) -> list[dict]:
        needle = str(term or "").strip().lower()
        if not needle:
            return self.list_all(db)
        like = contains_pattern(needle)
        rows = db.execute(
            f"""
            SELECT *
            FROM clients
            WHERE LOWER(legal_name) LIKE ? ESCAPE '!'
               OR LOWER(cnpj) LIKE ? ESCAPE '!'
               OR LOWER(city) LIKE ? ESCAPE '!'
            ORDER BY {self.default_order}
            """,
            (like, like, like),
        ).fetchall()
        return self.rows_to_dicts(rows)

    def has_quotes(self, db, client_id: int) -> bool:
        row = db.execute("SELECT 1 FROM quotes WHERE client_id = ? LIMIT 1", (client_id,)).fetchone()
        return row is not None
