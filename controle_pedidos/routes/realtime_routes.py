from __future__ import annotations

from flask import Blueprint, jsonify, request, session

from controle_pedidos.application.change_feed import ChangeFeedService
from controle_pedidos.application.client_error_service import ClientErrorService
from controle_pedidos.db import get_db
from controle_pedidos.routes.common import json_payload


realtime_bp = Blueprint("realtime", __name__)

_CHANGE_FEED = ChangeFeedService()
_CLIENT_ERRORS = ClientErrorService()


@realtime_bp.route("/api/realtime/changes", methods=["GET"])
def changes():
    raw = (request.args.get("after") or "").strip()
    cursor = int(raw) if raw.lstrip("-").isdigit() else None
    limit = request.args.get("limit", type=int) or 200
    result = _CHANGE_FEED.changes_after(get_db(), cursor, limit=max(1, min(limit, 500)))
    return jsonify(result.payload), result.status_code


@realtime_bp.route("/api/client-errors", methods=["POST"])
def client_errors():
    result = _CLIENT_ERRORS.report(json_payload(), user_id=session.get("user_id"))
    return jsonify(result.payload), result.status_code
