from __future__ import annotations

from flask import Blueprint, jsonify, request

from controle_pedidos.application.tracking_service import LitigationService, ShipmentService
from controle_pedidos.db import get_db
from controle_pedidos.policies import current_actor
from controle_pedidos.routes.common import json_payload


tracking_bp = Blueprint("tracking", __name__)

_SERVICES = {
    "litigations": LitigationService(),
    "shipments": ShipmentService(),
}


def _service(kind: str):
    return _SERVICES[kind]


@tracking_bp.route("/api/periods/<int:period_id>/<any(litigations, shipments):kind>", methods=["GET", "POST"])
def period_rows(period_id: int, kind: str):
    db = get_db()
    service = _service(kind)
    if request.method == "GET":
        result = service.list_for_period(db, period_id)
        return jsonify(result.payload), result.status_code

    result = service.create(db, actor=current_actor(), period_id=period_id, payload=json_payload())
    db.commit()
    return jsonify(result.payload), result.status_code


@tracking_bp.route("/api/<any(litigations, shipments):kind>/<int:row_id>", methods=["PATCH", "DELETE"])
def row_detail(kind: str, row_id: int):
    db = get_db()
    service = _service(kind)
    actor = current_actor()
    if request.method == "DELETE":
        result = service.delete(db, actor=actor, row_id=row_id)
    else:
        result = service.update(db, row_id=row_id, payload=json_payload())
    db.commit()
    return jsonify(result.payload), result.status_code
