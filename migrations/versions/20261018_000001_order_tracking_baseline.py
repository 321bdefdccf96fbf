"""Order tracking baseline from controle_pedidos.db

Revision ID: 20261018_000001
Revises:
Create Date: 2026-10-18 00:00:01
"""

from __future__ import annotations

from typing import Iterable, Sequence, Union

from alembic import op
from sqlalchemy.engine import Connection

from controle_pedidos.db import (
    TABLE_NAMES,
    _convert_qmark_to_pg,
    _ensure_default_admin,
    _init_db_postgres,
    _init_db_sqlite,
)


# revision identifiers, used by Alembic.
revision: str = "20261018_000001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


class _AlembicDbAdapter:
    def __init__(self, connection: Connection, backend: str):
        self._connection = connection
        self.backend = backend

    def execute(self, sql: str, params: Iterable | None = None):
        if params is None:
            result = self._connection.exec_driver_sql(sql)
        else:
            statement = _convert_qmark_to_pg(sql) if self.backend == "postgres" else sql
            result = self._connection.exec_driver_sql(statement, tuple(params))
        # Rows come back keyed by column name, like the app connection.
        return result.mappings() if result.returns_rows else result

    def commit(self):
        # Alembic controla transacoes no contexto da migration.
        return None


def _resolve_backend(connection: Connection) -> str:
    dialect = (connection.dialect.name or "").lower()
    if dialect.startswith("postgres"):
        return "postgres"
    return "sqlite"


def upgrade() -> None:
    connection = op.get_bind()
    backend = _resolve_backend(connection)
    adapter = _AlembicDbAdapter(connection, backend)

    if backend == "postgres":
        _init_db_postgres(adapter)
    else:
        _init_db_sqlite(adapter)
    _ensure_default_admin(adapter)


def downgrade() -> None:
    for table in TABLE_NAMES:
        op.execute(f"DROP TABLE IF EXISTS {table}")
