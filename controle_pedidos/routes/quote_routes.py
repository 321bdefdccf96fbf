from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from controle_pedidos.application.quote_service import QuoteService, quote_items_from_payload
from controle_pedidos.application.settings_service import SettingsService
from controle_pedidos.db import get_db
from controle_pedidos.domain.contracts import QuoteSaveInput
from controle_pedidos.formatting import parse_int
from controle_pedidos.policies import current_actor
from controle_pedidos.routes.common import json_payload


quote_bp = Blueprint("quotes", __name__)

_QUOTE_SERVICE = QuoteService()
_SETTINGS_SERVICE = SettingsService()


def _company_defaults() -> dict:
    config = current_app.config
    return {
        "company_name": config.get("QUOTE_COMPANY_NAME") or "",
        "company_address": config.get("QUOTE_COMPANY_ADDRESS") or "",
        "company_city": config.get("QUOTE_COMPANY_CITY") or "",
        "company_phone": config.get("QUOTE_COMPANY_PHONE") or "",
        "company_email": config.get("QUOTE_COMPANY_EMAIL") or "",
    }


def _save_input() -> QuoteSaveInput:
    payload = json_payload()
    client_id = parse_int(payload.get("client_id"), default=0)
    return QuoteSaveInput(
        client_id=client_id or None,
        date=payload.get("date"),
        items=quote_items_from_payload(payload.get("items")),
        number=payload.get("number"),
        status=str(payload.get("status") or "draft"),
        notes=str(payload.get("notes") or ""),
        company={key: str(value) for key, value in payload.items() if key.startswith("company_") and value},
    )


@quote_bp.route("/api/quotes", methods=["GET", "POST"])
def quotes():
    db = get_db()
    if request.method == "GET":
        result = _QUOTE_SERVICE.list_quotes(db)
        return jsonify(result.payload), result.status_code

    result = _QUOTE_SERVICE.save_quote(
        db,
        actor=current_actor(),
        save_input=_save_input(),
        company_defaults=_company_defaults(),
    )
    db.commit()
    return jsonify(result.payload), result.status_code


@quote_bp.route("/api/quotes/next-number", methods=["GET"])
def next_quote_number():
    return jsonify({"number": _QUOTE_SERVICE.next_number(get_db())})


@quote_bp.route("/api/quotes/<int:quote_id>", methods=["GET", "PUT", "DELETE"])
def quote_detail(quote_id: int):
    db = get_db()
    if request.method == "GET":
        result = _QUOTE_SERVICE.get_quote(db, quote_id)
        return jsonify(result.payload), result.status_code

    if request.method == "DELETE":
        result = _QUOTE_SERVICE.delete_quote(db, quote_id)
    else:
        result = _QUOTE_SERVICE.save_quote(
            db,
            actor=current_actor(),
            save_input=_save_input(),
            company_defaults=_company_defaults(),
            quote_id=quote_id,
        )
    db.commit()
    return jsonify(result.payload), result.status_code


@quote_bp.route("/api/quotes/<int:quote_id>/pdf", methods=["GET"])
def quote_pdf(quote_id: int):
    db = get_db()
    body, filename = _QUOTE_SERVICE.render_pdf(db, quote_id, logo=_SETTINGS_SERVICE.logo(db))
    response = current_app.response_class(body, mimetype="application/pdf")
    disposition = "attachment" if request.args.get("download") else "inline"
    response.headers["Content-Disposition"] = f'{disposition}; filename="{filename}"'
    return response
