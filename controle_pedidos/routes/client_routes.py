from __future__ import annotations

from flask import Blueprint, jsonify, request

from controle_pedidos.application.client_service import ClientService
from controle_pedidos.db import get_db
from controle_pedidos.routes.common import json_payload


client_bp = Blueprint("clients", __name__)

_CLIENT_SERVICE = ClientService()


@client_bp.route("/api/clients", methods=["GET", "POST"])
def clients():
    db = get_db()
    if request.method == "GET":
        result = _CLIENT_SERVICE.list_clients(db, search=request.args.get("search"))
        return jsonify(result.payload), result.status_code

    result = _CLIENT_SERVICE.create_client(db, json_payload())
    db.commit()
    return jsonify(result.payload), result.status_code


@client_bp.route("/api/clients/<int:client_id>", methods=["GET", "PATCH", "DELETE"])
def client_detail(client_id: int):
    db = get_db()
    if request.method == "GET":
        result = _CLIENT_SERVICE.get_client(db, client_id)
        return jsonify(result.payload), result.status_code

    if request.method == "DELETE":
        result = _CLIENT_SERVICE.delete_client(db, client_id)
    else:
        result = _CLIENT_SERVICE.update_client(db, client_id, json_payload())
    db.commit()
    return jsonify(result.payload), result.status_code
