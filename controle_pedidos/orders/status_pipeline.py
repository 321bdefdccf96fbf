from __future__ import annotations

from typing import Dict, Iterable, List

from controle_pedidos.formatting import add_days
from controle_pedidos.ui_strings import STATUS_GROUPS, status_keys_for_group, status_labels_for_group


ORDER_INITIAL_STATUS = "separating"
ORDER_TERMINAL_STATUS = "thc_2000"
THC_DEFAULT_SUB_STATUS = "pending_shipment"
THC_DEADLINE_DAYS = 16

LITIGATION_INITIAL_STATUS = "budgeted"
SHIPMENT_INITIAL_STATUS = "pending"
QUOTE_INITIAL_STATUS = "draft"

# Day-to-day logistics fields anyone may touch without holding the edit lease.
LEASE_FREE_FIELDS = frozenset({"status", "tracking_code"})

# Writable order fields and how incoming values are coerced.
ORDER_FIELD_KINDS: Dict[str, str] = {
    "order_number": "order_number",
    "client": "text",
    "doctor": "text",
    "seller": "text",
    "date": "date",
    "product": "text",
    "quantity": "int",
    "total_amount": "money",
    "tracking_code": "text",
    "status": "status",
    "thc_sub_status": "thc_status",
}

ORDER_REQUIRED_ON_FINISH = ("client", "product")


def normalize_status(group: str, value: str | None) -> str | None:
    """Accept a status key or its legacy label and return the key."""
    raw = str(value or "").strip()
    if not raw:
        return None
    for item in STATUS_GROUPS.get(group, []):
        if raw == item["key"] or raw == item["label"]:
            return item["key"]
    return None


def status_label(group: str, key: str | None) -> str:
    if not key:
        return ""
    return status_labels_for_group(group).get(key, key)


def allowed_statuses(group: str) -> List[str]:
    return status_keys_for_group(group)


def can_write_order_field(role: str, field: str, holds_lease: bool) -> bool:
    if field not in ORDER_FIELD_KINDS:
        return False
    if role == "admin":
        return True
    if holds_lease:
        return True
    return field in LEASE_FREE_FIELDS


def missing_fields_for_finish(order: dict) -> List[str]:
    return [name for name in ORDER_REQUIRED_ON_FINISH if not str(order.get(name) or "").strip()]


def thc_deadline(order_date: str | None) -> str | None:
    return add_days(order_date, THC_DEADLINE_DAYS)


def effective_thc_sub_status(order: dict) -> str | None:
    if order.get("status") != ORDER_TERMINAL_STATUS:
        return None
    return order.get("thc_sub_status") or THC_DEFAULT_SUB_STATUS


def decorate_order(order: dict) -> dict:
    decorated = dict(order)
    decorated["status_label"] = status_label("order", order.get("status"))
    sub_status = effective_thc_sub_status(order)
    decorated["thc_sub_status"] = sub_status if sub_status else order.get("thc_sub_status")
    if sub_status:
        decorated["thc_sub_status_label"] = status_label("thc", sub_status)
        decorated["thc_deadline"] = thc_deadline(order.get("date"))
    return decorated


def summarize_statuses(orders: Iterable[dict]) -> Dict[str, object]:
    counts = {key: 0 for key in allowed_statuses("order")}
    total = 0
    for order in orders:
        total += 1
        status = order.get("status")
        if status in counts:
            counts[status] += 1
    return {"total": total, "by_status": counts}


def summarize_thc(orders: Iterable[dict]) -> Dict[str, int]:
    summary = {"total": 0, "pending_shipment": 0, "shipped": 0}
    for order in orders:
        if order.get("status") != ORDER_TERMINAL_STATUS:
            continue
        summary["total"] += 1
        sub_status = effective_thc_sub_status(order)
        summary[sub_status] = summary.get(sub_status, 0) + 1
    return summary


def frontend_bundle() -> Dict[str, object]:
    return {
        "order_initial_status": ORDER_INITIAL_STATUS,
        "order_terminal_status": ORDER_TERMINAL_STATUS,
        "thc_default_sub_status": THC_DEFAULT_SUB_STATUS,
        "thc_deadline_days": THC_DEADLINE_DAYS,
        "lease_free_fields": sorted(LEASE_FREE_FIELDS),
        "order_fields": sorted(ORDER_FIELD_KINDS),
    }
