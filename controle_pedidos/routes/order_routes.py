from __future__ import annotations

from flask import Blueprint, jsonify, request

from controle_pedidos.application.order_service import OrderService
from controle_pedidos.csv_import import ORDER_TEMPLATE_FILENAME, build_orders_template
from controle_pedidos.db import get_db
from controle_pedidos.domain.contracts import OrderImportInput, OrderReserveInput, OrderUpdateInput
from controle_pedidos.errors import ValidationError
from controle_pedidos.policies import current_actor
from controle_pedidos.routes.common import csv_download, flag, json_payload, lease_seconds, read_csv_upload


order_bp = Blueprint("orders", __name__)

_ORDER_SERVICE = OrderService()


@order_bp.route("/api/periods/<int:period_id>/orders", methods=["GET"])
def list_orders(period_id: int):
    result = _ORDER_SERVICE.list_orders(
        get_db(),
        period_id=period_id,
        search=request.args.get("search") or "",
        status=request.args.get("status") or None,
    )
    return jsonify(result.payload), result.status_code


@order_bp.route("/api/periods/<int:period_id>/orders/stats", methods=["GET"])
def order_stats(period_id: int):
    result = _ORDER_SERVICE.order_stats(get_db(), period_id=period_id)
    return jsonify(result.payload), result.status_code


@order_bp.route("/api/periods/<int:period_id>/orders/reserve", methods=["POST"])
def reserve_order(period_id: int):
    db = get_db()
    payload = json_payload()
    result = _ORDER_SERVICE.reserve(
        db,
        actor=current_actor(),
        reserve_input=OrderReserveInput(period_id=period_id, order_number=str(payload.get("order_number") or "")),
        lease_seconds=lease_seconds(),
    )
    db.commit()
    return jsonify(result.payload), result.status_code


@order_bp.route("/api/periods/<int:period_id>/orders/import", methods=["POST"])
def import_orders(period_id: int):
    db = get_db()
    csv_text = read_csv_upload()
    result = _ORDER_SERVICE.import_orders(
        db,
        actor=current_actor(),
        import_input=OrderImportInput(period_id=period_id, csv_text=csv_text, dry_run=flag("dry_run", json_payload())),
    )
    db.commit()
    return jsonify(result.payload), result.status_code


@order_bp.route("/api/orders/import-template", methods=["GET"])
def order_import_template():
    return csv_download(build_orders_template(), ORDER_TEMPLATE_FILENAME)


@order_bp.route("/api/orders/thc", methods=["GET"])
def list_thc_orders():
    result = _ORDER_SERVICE.list_thc(get_db(), search=request.args.get("search") or "")
    return jsonify(result.payload), result.status_code


@order_bp.route("/api/orders/thc/stats", methods=["GET"])
def thc_stats():
    result = _ORDER_SERVICE.thc_stats(get_db())
    return jsonify(result.payload), result.status_code


@order_bp.route("/api/orders/<int:order_id>", methods=["GET", "PATCH", "DELETE"])
def order_detail(order_id: int):
    db = get_db()
    if request.method == "GET":
        result = _ORDER_SERVICE.get_order(db, order_id=order_id)
        return jsonify(result.payload), result.status_code

    actor = current_actor()
    if request.method == "DELETE":
        result = _ORDER_SERVICE.delete_order(db, actor=actor, order_id=order_id)
        db.commit()
        return jsonify(result.payload), result.status_code

    payload = json_payload()
    if isinstance(payload.get("fields"), dict):
        fields = dict(payload["fields"])
    elif "field" in payload:
        fields = {str(payload.get("field") or ""): payload.get("value")}
    else:
        raise ValidationError(code="no_changes")
    result = _ORDER_SERVICE.update_fields(
        db,
        actor=actor,
        update_input=OrderUpdateInput(order_id=order_id, fields=fields),
        lease_seconds=lease_seconds(),
    )
    db.commit()
    return jsonify(result.payload), result.status_code


@order_bp.route("/api/orders/<int:order_id>/lease", methods=["POST", "PUT", "DELETE"])
def order_lease(order_id: int):
    db = get_db()
    actor = current_actor()
    if request.method == "POST":
        result = _ORDER_SERVICE.start_editing(db, actor=actor, order_id=order_id, lease_seconds=lease_seconds())
    elif request.method == "PUT":
        result = _ORDER_SERVICE.renew_editing(db, actor=actor, order_id=order_id, lease_seconds=lease_seconds())
    else:
        result = _ORDER_SERVICE.cancel_editing(db, actor=actor, order_id=order_id)
    db.commit()
    return jsonify(result.payload), result.status_code


@order_bp.route("/api/orders/<int:order_id>/finish", methods=["POST"])
def finish_order(order_id: int):
    db = get_db()
    result = _ORDER_SERVICE.finish_editing(db, actor=current_actor(), order_id=order_id)
    db.commit()
    return jsonify(result.payload), result.status_code
