from __future__ import annotations

from flask import Blueprint, jsonify, request

from controle_pedidos.application.seller_service import SellerService
from controle_pedidos.csv_import import SELLER_TEMPLATE_FILENAME, build_sellers_template
from controle_pedidos.db import get_db
from controle_pedidos.policies import current_actor
from controle_pedidos.routes.common import csv_download, flag, json_payload, read_csv_upload


seller_bp = Blueprint("sellers", __name__)

_SELLER_SERVICE = SellerService()


@seller_bp.route("/api/sellers", methods=["GET", "POST"])
def sellers():
    db = get_db()
    if request.method == "GET":
        result = _SELLER_SERVICE.list_sellers(db, active_only=flag("active"))
        return jsonify(result.payload), result.status_code

    result = _SELLER_SERVICE.create_seller(db, actor=current_actor(), name=str(json_payload().get("name") or ""))
    db.commit()
    return jsonify(result.payload), result.status_code


@seller_bp.route("/api/sellers/<int:seller_id>", methods=["PATCH", "DELETE"])
def seller_detail(seller_id: int):
    db = get_db()
    actor = current_actor()
    if request.method == "DELETE":
        result = _SELLER_SERVICE.delete_seller(db, actor=actor, seller_id=seller_id)
    else:
        result = _SELLER_SERVICE.update_seller(db, actor=actor, seller_id=seller_id, payload=json_payload())
    db.commit()
    return jsonify(result.payload), result.status_code


@seller_bp.route("/api/sellers/autocomplete", methods=["GET"])
def seller_autocomplete():
    result = _SELLER_SERVICE.autocomplete(get_db(), request.args.get("q"))
    return jsonify(result.payload), result.status_code


@seller_bp.route("/api/sellers/resolve", methods=["GET"])
def seller_resolve():
    result = _SELLER_SERVICE.resolve(get_db(), request.args.get("q"))
    return jsonify(result.payload), result.status_code


@seller_bp.route("/api/sellers/import", methods=["POST"])
def import_sellers():
    db = get_db()
    actor = current_actor()
    csv_text = read_csv_upload()
    result = _SELLER_SERVICE.import_sellers(db, actor=actor, csv_text=csv_text, dry_run=flag("dry_run", json_payload()))
    db.commit()
    return jsonify(result.payload), result.status_code


@seller_bp.route("/api/sellers/import-template", methods=["GET"])
def seller_import_template():
    return csv_download(build_sellers_template(), SELLER_TEMPLATE_FILENAME)
