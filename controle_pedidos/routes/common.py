from __future__ import annotations

from typing import Any, Dict

from flask import current_app, request

from controle_pedidos.errors import ValidationError


_TRUE_VALUES = {"1", "true", "yes", "on", "sim"}


def json_payload() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def flag(name: str, payload: Dict[str, Any] | None = None) -> bool:
    raw = request.args.get(name)
    if raw is None and payload is not None:
        raw = payload.get(name)
    if raw is None:
        raw = request.form.get(name)
    if isinstance(raw, bool):
        return raw
    return str(raw or "").strip().lower() in _TRUE_VALUES


def lease_seconds() -> int:
    return max(1, int(current_app.config.get("EDIT_LEASE_SECONDS", 900) or 900))


def _decode_text(blob: bytes) -> str:
    try:
        return blob.decode("utf-8-sig")
    except UnicodeDecodeError:
        # Spreadsheets saved by Excel on Windows.
        return blob.decode("cp1252", errors="replace")


def read_csv_upload() -> str:
    """CSV text from a multipart `file`, a JSON {"csv": ...} body, or the raw request body."""
    max_bytes = int(current_app.config.get("CSV_MAX_BYTES", 2 * 1024 * 1024))
    upload = request.files.get("file")
    if upload is not None:
        blob = upload.read(max_bytes + 1)
    else:
        payload = json_payload()
        if payload:
            blob = str(payload.get("csv") or "").encode("utf-8")
        else:
            blob = request.get_data(cache=False) or b""
    if len(blob) > max_bytes:
        raise ValidationError(code="csv_too_large", http_status=413, payload={"max_bytes": max_bytes})
    if not blob.strip():
        raise ValidationError(code="csv_file_required")
    return _decode_text(blob)


def csv_download(text: str, filename: str):
    response = current_app.response_class(text.encode("utf-8"), mimetype="text/csv")
    response.headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    response.headers["Content-Type"] = "text/csv; charset=utf-8"
    return response
