from __future__ import annotations

from flask import Blueprint, jsonify

from controle_pedidos.application.period_service import PeriodService
from controle_pedidos.db import get_db
from controle_pedidos.policies import current_actor
from controle_pedidos.routes.common import json_payload


period_bp = Blueprint("periods", __name__)

_PERIOD_SERVICE = PeriodService()


@period_bp.route("/api/periods", methods=["GET"])
def list_periods():
    db = get_db()
    result = _PERIOD_SERVICE.list_periods(db)
    db.commit()
    return jsonify(result.payload), result.status_code


@period_bp.route("/api/periods", methods=["POST"])
def create_period():
    db = get_db()
    result = _PERIOD_SERVICE.create_period(db, actor=current_actor(), name=str(json_payload().get("name") or ""))
    db.commit()
    return jsonify(result.payload), result.status_code
