from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request, session

from controle_pedidos.application.settings_service import SettingsService, normalize_theme
from controle_pedidos.db import get_db
from controle_pedidos.policies import current_actor
from controle_pedidos.routes.common import json_payload
from controle_pedidos.ui_strings import success_message


settings_bp = Blueprint("settings", __name__)

_SETTINGS_SERVICE = SettingsService()


@settings_bp.route("/api/preferences/theme", methods=["GET", "PUT"])
def theme():
    if request.method == "PUT":
        session["theme"] = normalize_theme(json_payload().get("theme"))
        return jsonify({"theme": session["theme"], "message": success_message("theme_saved")})
    return jsonify({"theme": session.get("theme") or "light"})


@settings_bp.route("/api/branding/logo", methods=["GET", "PUT", "DELETE"])
def logo():
    db = get_db()
    if request.method == "GET":
        result = _SETTINGS_SERVICE.get_logo(db)
        return jsonify(result.payload), result.status_code

    actor = current_actor()
    if request.method == "DELETE":
        result = _SETTINGS_SERVICE.delete_logo(db, actor=actor)
    else:
        result = _SETTINGS_SERVICE.save_logo(
            db,
            actor=actor,
            data_url=str(json_payload().get("logo") or ""),
            max_bytes=int(current_app.config.get("LOGO_MAX_BYTES", 512 * 1024)),
        )
    db.commit()
    return jsonify(result.payload), result.status_code
