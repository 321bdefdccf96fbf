from flask import Blueprint, jsonify

from controle_pedidos import csv_import
from controle_pedidos.orders import status_pipeline
from controle_pedidos.ui_strings import frontend_bundle


home_bp = Blueprint("home", __name__)


@home_bp.route("/api/meta", methods=["GET"])
def meta():
    return jsonify(
        {
            "ui": frontend_bundle(),
            "orders": status_pipeline.frontend_bundle(),
            "csv": {
                "orders": {
                    "headers": list(csv_import.ORDER_TEMPLATE_HEADERS),
                    "required": list(csv_import.ORDER_REQUIRED_COLUMNS),
                    "template_filename": csv_import.ORDER_TEMPLATE_FILENAME,
                },
                "sellers": {
                    "headers": list(csv_import.SELLER_TEMPLATE_HEADERS),
                    "template_filename": csv_import.SELLER_TEMPLATE_FILENAME,
                },
            },
        }
    )
