import sqlite3
from typing import Dict, Iterable

try:
    import psycopg2
    import psycopg2.extras
except ImportError:  # pragma: no cover - optional dependency for postgres
    psycopg2 = None

from flask import current_app, g
from werkzeug.security import generate_password_hash


class Database:
    def __init__(self, backend: str, connection):
        self.backend = backend
        self._conn = connection

    def execute(self, sql: str, params: Iterable | None = None):
        if self.backend == "postgres":
            cursor = self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            if params:
                sql = _convert_qmark_to_pg(sql)
                cursor.execute(sql, list(params))
            else:
                cursor.execute(sql)
            return cursor
        return self._conn.execute(sql, params or ())

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        self._conn.close()


def _convert_qmark_to_pg(sql: str) -> str:
    return sql.replace("?", "%s")


def _connect_database(db_path: str) -> Database:
    if db_path.lower().startswith("postgres"):
        if psycopg2 is None:
            raise RuntimeError("psycopg2 nao instalado.")
        conn = psycopg2.connect(db_path)
        conn.autocommit = True
        return Database("postgres", conn)

    conn = sqlite3.connect(db_path, timeout=10.0)
    conn.row_factory = sqlite3.Row
    return Database("sqlite", conn)


def get_db():
    if "db" not in g:
        db_path = current_app.config["DB_PATH"]
        g.db = _connect_database(db_path)
    return g.db


def close_db(_error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


def is_unique_violation(exc: BaseException) -> bool:
    """True when the backend refused a write because of a unique constraint."""
    if isinstance(exc, sqlite3.IntegrityError):
        return "unique" in str(exc).lower()
    if psycopg2 is not None and isinstance(exc, psycopg2.IntegrityError):
        return getattr(exc, "pgcode", None) == "23505"
    return False


def fetch_id(cursor) -> int:
    row = cursor.fetchone()
    return int(row["id"] if isinstance(row, dict) else row[0])


def init_db():
    db = get_db()
    if db.backend == "postgres":
        _init_db_postgres(db)
    else:
        _init_db_sqlite(db)
    _ensure_default_admin(db)
    db.commit()


_SQLITE_TYPES: Dict[str, str] = {
    "pk": "INTEGER PRIMARY KEY AUTOINCREMENT",
    "ts": "TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP",
    "bool_true": "INTEGER NOT NULL DEFAULT 1",
    "bool_false": "INTEGER NOT NULL DEFAULT 0",
    "money": "REAL NOT NULL DEFAULT 0",
}

_POSTGRES_TYPES: Dict[str, str] = {
    "pk": "SERIAL PRIMARY KEY",
    "ts": "TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP",
    "bool_true": "BOOLEAN NOT NULL DEFAULT TRUE",
    "bool_false": "BOOLEAN NOT NULL DEFAULT FALSE",
    "money": "DOUBLE PRECISION NOT NULL DEFAULT 0",
}

_TABLES = [
    """
    CREATE TABLE IF NOT EXISTS periods (
        id {pk},
        name TEXT NOT NULL,
        month INTEGER NOT NULL,
        year INTEGER NOT NULL,
        created_at {ts}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS users (
        id {pk},
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'collaborator' CHECK (role IN ('admin','collaborator')),
        active {bool_true},
        created_by INTEGER,
        created_at {ts},
        updated_at {ts}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sellers (
        id {pk},
        name TEXT NOT NULL,
        active {bool_true},
        created_at {ts}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS orders (
        id {pk},
        period_id INTEGER NOT NULL REFERENCES periods(id),
        order_number TEXT NOT NULL,
        client TEXT NOT NULL DEFAULT '',
        doctor TEXT NOT NULL DEFAULT '',
        seller TEXT NOT NULL DEFAULT '',
        date TEXT,
        product TEXT NOT NULL DEFAULT '',
        quantity INTEGER NOT NULL DEFAULT 1,
        total_amount {money},
        tracking_code TEXT NOT NULL DEFAULT '',
        status TEXT NOT NULL DEFAULT 'separating' CHECK (
            status IN ('separating','in_transit','anvisa','anvisa_problem','delayed','document_rejected','thc_2000')
        ),
        thc_sub_status TEXT CHECK (thc_sub_status IS NULL OR thc_sub_status IN ('pending_shipment','shipped')),
        editing_by INTEGER,
        editing_expires_at TEXT,
        created_by INTEGER,
        created_at {ts},
        updated_at {ts}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS litigations (
        id {pk},
        period_id INTEGER NOT NULL REFERENCES periods(id),
        case_number TEXT NOT NULL DEFAULT '',
        client TEXT NOT NULL DEFAULT '',
        lawyer TEXT NOT NULL DEFAULT '',
        product TEXT NOT NULL DEFAULT '',
        quantity INTEGER NOT NULL DEFAULT 1,
        total_amount {money},
        date TEXT,
        status TEXT NOT NULL DEFAULT 'budgeted' CHECK (status IN ('budgeted','shipped','delivered')),
        notes TEXT NOT NULL DEFAULT '',
        created_by INTEGER,
        created_at {ts},
        updated_at {ts}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS shipments (
        id {pk},
        period_id INTEGER NOT NULL REFERENCES periods(id),
        recipient_name TEXT NOT NULL DEFAULT '',
        product TEXT NOT NULL DEFAULT '',
        quantity INTEGER NOT NULL DEFAULT 1,
        date TEXT,
        tracking_code TEXT NOT NULL DEFAULT '',
        status TEXT NOT NULL DEFAULT 'pending' CHECK (
            status IN ('pending','shipped','in_transit','anvisa','problem')
        ),
        created_by INTEGER,
        created_at {ts},
        updated_at {ts}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS clients (
        id {pk},
        legal_name TEXT NOT NULL,
        cnpj TEXT NOT NULL DEFAULT '',
        address TEXT NOT NULL DEFAULT '',
        city TEXT NOT NULL DEFAULT '',
        state TEXT NOT NULL DEFAULT '',
        zip_code TEXT NOT NULL DEFAULT '',
        phone TEXT NOT NULL DEFAULT '',
        email TEXT NOT NULL DEFAULT '',
        contact TEXT NOT NULL DEFAULT '',
        active {bool_true},
        created_at {ts},
        updated_at {ts}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS quotes (
        id {pk},
        number TEXT NOT NULL UNIQUE,
        date TEXT NOT NULL,
        client_id INTEGER REFERENCES clients(id),
        client_name TEXT NOT NULL DEFAULT '',
        company_name TEXT NOT NULL DEFAULT '',
        company_address TEXT NOT NULL DEFAULT '',
        company_city TEXT NOT NULL DEFAULT '',
        company_phone TEXT NOT NULL DEFAULT '',
        company_email TEXT NOT NULL DEFAULT '',
        notes TEXT NOT NULL DEFAULT '',
        total_amount {money},
        status TEXT NOT NULL DEFAULT 'draft' CHECK (status IN ('draft','sent','approved','rejected')),
        created_by INTEGER,
        created_at {ts},
        updated_at {ts}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS quote_items (
        id {pk},
        quote_id INTEGER NOT NULL REFERENCES quotes(id),
        line_no INTEGER NOT NULL,
        description TEXT NOT NULL,
        quantity INTEGER NOT NULL DEFAULT 1,
        unit_price {money},
        line_total {money}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sticky_notes (
        id {pk},
        user_id INTEGER NOT NULL REFERENCES users(id),
        content TEXT NOT NULL DEFAULT '',
        color TEXT NOT NULL DEFAULT '#fef08a',
        pos_x INTEGER NOT NULL DEFAULT 0,
        pos_y INTEGER NOT NULL DEFAULT 0,
        width INTEGER NOT NULL DEFAULT 200,
        height INTEGER NOT NULL DEFAULT 150,
        priority TEXT NOT NULL DEFAULT 'medium' CHECK (priority IN ('low','medium','high','urgent')),
        created_at {ts},
        updated_at {ts}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS task_lists (
        id {pk},
        user_id INTEGER NOT NULL REFERENCES users(id),
        title TEXT NOT NULL DEFAULT 'Nova Lista',
        color TEXT NOT NULL DEFAULT '#bfdbfe',
        pos_x INTEGER NOT NULL DEFAULT 0,
        pos_y INTEGER NOT NULL DEFAULT 0,
        created_at {ts}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id {pk},
        user_id INTEGER NOT NULL REFERENCES users(id),
        list_id INTEGER NOT NULL REFERENCES task_lists(id),
        text TEXT NOT NULL,
        done {bool_false},
        position INTEGER NOT NULL DEFAULT 0,
        created_at {ts}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS app_settings (
        key TEXT PRIMARY KEY,
        value TEXT,
        updated_at {ts}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS change_log (
        id {pk},
        entity TEXT NOT NULL,
        entity_id INTEGER,
        action TEXT NOT NULL,
        period_id INTEGER,
        actor_id INTEGER,
        created_at {ts}
    )
    """,
]

_INDEXES = [
    # Case-insensitive order number uniqueness inside a period.
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_orders_period_number ON orders (period_id, UPPER(order_number))",
    "CREATE INDEX IF NOT EXISTS idx_orders_status ON orders (status)",
    "CREATE INDEX IF NOT EXISTS idx_orders_editing_by ON orders (editing_by)",
    "CREATE INDEX IF NOT EXISTS idx_litigations_period ON litigations (period_id)",
    "CREATE INDEX IF NOT EXISTS idx_shipments_period ON shipments (period_id)",
    "CREATE INDEX IF NOT EXISTS idx_quote_items_quote ON quote_items (quote_id)",
    "CREATE INDEX IF NOT EXISTS idx_sticky_notes_user ON sticky_notes (user_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_list ON tasks (list_id)",
]

TABLE_NAMES = [
    "change_log",
    "app_settings",
    "tasks",
    "task_lists",
    "sticky_notes",
    "quote_items",
    "quotes",
    "clients",
    "shipments",
    "litigations",
    "orders",
    "sellers",
    "users",
    "periods",
]


def _create_schema(db: Database, types: Dict[str, str]) -> None:
    for statement in _TABLES:
        db.execute(statement.format(**types))
    for statement in _INDEXES:
        db.execute(statement)


def _init_db_sqlite(db: Database) -> None:
    _create_schema(db, _SQLITE_TYPES)


def _init_db_postgres(db: Database) -> None:
    _create_schema(db, _POSTGRES_TYPES)


def _ensure_default_admin(db: Database) -> None:
    try:
        email = str(current_app.config.get("DEFAULT_ADMIN_EMAIL") or "").strip().lower()
        password = str(current_app.config.get("DEFAULT_ADMIN_PASSWORD") or "")
        name = str(current_app.config.get("DEFAULT_ADMIN_NAME") or "Administrador")
    except RuntimeError:
        return
    if not email or not password:
        return
    row = db.execute("SELECT COUNT(*) AS total FROM users").fetchone()
    if int(row["total"] if row else 0) > 0:
        return
    db.execute(
        """
        INSERT INTO users (name, email, password_hash, role, active)
        VALUES (?, ?, ?, 'admin', ?)
        """,
        (name, email, generate_password_hash(password), True),
    )
