from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request, session

from controle_pedidos.application.auth_service import AuthService
from controle_pedidos.db import get_db
from controle_pedidos.domain.contracts import AuthLoginInput
from controle_pedidos.errors import PermissionError as AppPermissionError
from controle_pedidos.errors import ValidationError
from controle_pedidos.ui_strings import success_message


auth_bp = Blueprint("auth", __name__)
_AUTH_SERVICE = AuthService()
_PUBLIC_PATHS = {"/api/auth/login", "/api/client-errors", "/health", "/metrics"}


def register_auth(app) -> None:
    app.register_blueprint(auth_bp)

    @app.before_request
    def _require_login():
        if not app.config.get("AUTH_ENABLED", True):
            return None

        path = request.path or "/"
        if path in _PUBLIC_PATHS or not path.startswith("/api/"):
            return None
        if session.get("user_id") is not None:
            return None
        raise AppPermissionError(code="auth_required", http_status=401)


@auth_bp.route("/api/auth/login", methods=["POST"])
def login():
    payload = request.get_json(silent=True) or {}
    email = str(payload.get("email") or "").strip()
    password = str(payload.get("password") or "")
    if not email or not password:
        raise ValidationError(code="auth_missing_credentials")

    user = _AUTH_SERVICE.login(get_db(), AuthLoginInput(email=email, password=password))
    if user is None:
        logging.getLogger("controle_pedidos").info("login_failed", extra={"email": email.lower()})
        raise AppPermissionError(code="auth_invalid_credentials", http_status=401)

    theme = session.get("theme")
    session.clear()
    if theme:
        session["theme"] = theme
    session["user_id"] = user.id
    session["user_role"] = user.role
    session["display_name"] = user.name
    session["user_email"] = user.email
    logging.getLogger("controle_pedidos").info("login_succeeded", extra={"user_id": user.id})
    return jsonify(
        {
            "user": {"id": user.id, "name": user.name, "email": user.email, "role": user.role},
            "message": success_message("logged_in", name=user.name),
        }
    )


@auth_bp.route("/api/auth/logout", methods=["POST"])
def logout():
    theme = session.get("theme")
    session.clear()
    if theme:
        session["theme"] = theme
    return jsonify({"ok": True})


@auth_bp.route("/api/auth/session", methods=["GET"])
def current_session():
    user = _AUTH_SERVICE.session_user(get_db(), session.get("user_id"))
    if user is None:
        session.pop("user_id", None)
        raise AppPermissionError(code="auth_required", http_status=401)
    return jsonify({"user": user, "theme": session.get("theme") or "light"})
