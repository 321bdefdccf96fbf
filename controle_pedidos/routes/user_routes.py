from __future__ import annotations

from flask import Blueprint, jsonify, request

from controle_pedidos.application.user_service import UserService
from controle_pedidos.db import get_db
from controle_pedidos.domain.contracts import UserSaveInput
from controle_pedidos.policies import current_actor
from controle_pedidos.routes.common import json_payload


user_bp = Blueprint("users", __name__)

_USER_SERVICE = UserService()


def _save_input() -> UserSaveInput:
    payload = json_payload()
    return UserSaveInput(
        name=str(payload.get("name") or ""),
        email=str(payload.get("email") or ""),
        role=str(payload.get("role") or "collaborator"),
        password=str(payload.get("password") or "") or None,
    )


@user_bp.route("/api/users", methods=["GET", "POST"])
def users():
    db = get_db()
    actor = current_actor()
    if request.method == "GET":
        result = _USER_SERVICE.list_users(db, actor=actor)
        return jsonify(result.payload), result.status_code
    result = _USER_SERVICE.create_user(db, actor=actor, save_input=_save_input())
    db.commit()
    return jsonify(result.payload), result.status_code


@user_bp.route("/api/users/<int:user_id>", methods=["PATCH"])
def update_user(user_id: int):
    db = get_db()
    result = _USER_SERVICE.update_user(db, actor=current_actor(), user_id=user_id, save_input=_save_input())
    db.commit()
    return jsonify(result.payload), result.status_code


@user_bp.route("/api/users/<int:user_id>/toggle-active", methods=["POST"])
def toggle_user(user_id: int):
    db = get_db()
    result = _USER_SERVICE.toggle_active(db, actor=current_actor(), user_id=user_id)
    db.commit()
    return jsonify(result.payload), result.status_code
