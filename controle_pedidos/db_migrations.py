from __future__ import annotations

from pathlib import Path

import click
from alembic import command
from alembic.config import Config as AlembicConfig
from flask import Flask


PROJECT_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_INI = PROJECT_ROOT / "alembic.ini"
MIGRATIONS_DIR = PROJECT_ROOT / "migrations"

_SQLALCHEMY_PREFIXES = ("postgresql://", "postgresql+", "sqlite://", "sqlite+pysqlite://")


def to_sqlalchemy_url(raw_db_path: str) -> str:
    """DB_PATH is either a sqlite file path or a postgres DSN; Alembic wants a SQLAlchemy URL."""
    raw = (raw_db_path or "").strip()
    if not raw:
        raise RuntimeError("DB_PATH indefinido para migrations.")
    if raw.startswith("postgres://"):
        # Heroku-style DSN; SQLAlchemy only knows the long scheme.
        raw = "postgresql://" + raw[len("postgres://") :]
    if raw.startswith(_SQLALCHEMY_PREFIXES):
        return raw
    return f"sqlite:///{Path(raw).expanduser().resolve().as_posix()}"


def build_alembic_config(app: Flask) -> AlembicConfig:
    if not ALEMBIC_INI.exists():
        raise RuntimeError(f"alembic.ini nao encontrado em {PROJECT_ROOT}.")
    cfg = AlembicConfig(str(ALEMBIC_INI))
    cfg.set_main_option("script_location", MIGRATIONS_DIR.as_posix())
    cfg.set_main_option("sqlalchemy.url", to_sqlalchemy_url(app.config["DB_PATH"]))
    # Tells env.py to trust the URL above instead of DATABASE_URL.
    cfg.attributes["from_app"] = True
    return cfg


def _run(app: Flask, action: str, *args, **kwargs) -> None:
    app.logger.info("db_migration", extra={"action": action, "target": args[0] if args else None})
    getattr(command, action)(build_alembic_config(app), *args, **kwargs)


def register_db_cli(app: Flask) -> None:
    @app.cli.group("db")
    def db_group() -> None:
        """Schema do controle de pedidos (Alembic)."""

    @db_group.command("upgrade")
    @click.argument("revision", required=False, default="head")
    def db_upgrade(revision: str) -> None:
        _run(app, "upgrade", revision)
        click.echo(f"Schema atualizado ate {revision}.")

    @db_group.command("downgrade")
    @click.argument("revision", required=False, default="-1")
    def db_downgrade(revision: str) -> None:
        _run(app, "downgrade", revision)
        click.echo(f"Schema revertido ate {revision}.")

    @db_group.command("current")
    def db_current() -> None:
        _run(app, "current", verbose=True)

    @db_group.command("history")
    def db_history() -> None:
        _run(app, "history", verbose=True)
