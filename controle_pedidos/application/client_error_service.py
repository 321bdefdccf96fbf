from __future__ import annotations

import logging
from typing import Any, Dict

from controle_pedidos.domain.contracts import ServiceOutput
from controle_pedidos.observability import observe_client_error
from controle_pedidos.ui_strings import get_ui_text


# Browser extensions that rewrite the page make React's DOM reconciliation fail with these.
EXTENSION_DOM_MARKERS = ("removeChild", "insertBefore", "appendChild")


def classify_client_error(message: str | None) -> Dict[str, str]:
    text = str(message or "")
    if any(marker in text for marker in EXTENSION_DOM_MARKERS):
        return {
            "kind": "recoverable",
            "action": "reload",
            "message": get_ui_text("client_error.recoverable"),
            "action_label": get_ui_text("client_error.action.reload"),
        }
    return {
        "kind": "fatal",
        "action": "clear_local_state",
        "message": get_ui_text("client_error.fatal"),
        "action_label": get_ui_text("client_error.action.clear_local_state"),
    }


class ClientErrorService:
    def report(self, payload: Dict[str, Any], *, user_id: int | None = None) -> ServiceOutput:
        message = str(payload.get("message") or "")[:2000]
        verdict = classify_client_error(message)
        observe_client_error(verdict["kind"])
        logger = logging.getLogger("controle_pedidos.client")
        log = logger.warning if verdict["kind"] == "fatal" else logger.info
        log(
            "client_error_reported",
            extra={
                "kind": verdict["kind"],
                "client_message": message,
                "client_stack": str(payload.get("stack") or "")[:4000],
                "client_url": str(payload.get("url") or "")[:500],
                "user_id": user_id,
            },
        )
        return ServiceOutput(payload=verdict)
