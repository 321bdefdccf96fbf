from __future__ import annotations


class SettingsRepository:
    def get(self, db, key: str) -> str | None:
        row = db.execute("SELECT value FROM app_settings WHERE key = ?", (key,)).fetchone()
        if not row:
            return None
        return row["value"]

    def set(self, db, key: str, value: str) -> None:
        db.execute(
            """
            INSERT INTO app_settings (key, value, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT (key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP
            """,
            (key, value),
        )

    def delete(self, db, key: str) -> None:
        db.execute("DELETE FROM app_settings WHERE key = ?", (key,))
