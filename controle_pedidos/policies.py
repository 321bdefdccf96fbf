from __future__ import annotations

from typing import Set

from flask import session

from controle_pedidos.domain.contracts import Actor
from controle_pedidos.errors import PermissionError as AppPermissionError


VALID_ROLES: Set[str] = {"admin", "collaborator"}


def normalize_role(role: str | None, default: str = "collaborator") -> str:
    normalized = str(role or "").strip().lower()
    if normalized in VALID_ROLES:
        return normalized
    return default if default in VALID_ROLES else ""


def current_role() -> str:
    return normalize_role(session.get("user_role"), default="collaborator")


def current_actor() -> Actor:
    user_id = session.get("user_id")
    if user_id is None:
        raise AppPermissionError(
            code="auth_required",
            message_key="auth_required",
            http_status=401,
            critical=False,
        )
    return Actor(
        user_id=int(user_id),
        role=current_role(),
        name=str(session.get("display_name") or ""),
    )


def require_admin(actor: Actor) -> None:
    if actor.is_admin:
        return
    raise AppPermissionError(code="admin_only", http_status=403, critical=False)
