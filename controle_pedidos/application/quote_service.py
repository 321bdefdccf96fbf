from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Callable, Dict, List

from controle_pedidos.db import is_unique_violation
from controle_pedidos.documents.quote_pdf import build_quote_pdf, quote_pdf_filename
from controle_pedidos.domain.contracts import Actor, QuoteItemInput, QuoteSaveInput, ServiceOutput
from controle_pedidos.errors import ConflictError, NotFoundError, ValidationError
from controle_pedidos.formatting import now_sao_paulo, parse_currency, parse_date, parse_int
from controle_pedidos.infrastructure.repositories import ClientRepository, QuoteRepository
from controle_pedidos.orders.status_pipeline import QUOTE_INITIAL_STATUS, normalize_status
from controle_pedidos.ui_strings import success_message


QUOTE_NUMBER_PREFIX = "ORC"
COMPANY_FIELDS = ("company_name", "company_address", "company_city", "company_phone", "company_email")


def quote_items_from_payload(raw_items: Any) -> List[QuoteItemInput]:
    items: List[QuoteItemInput] = []
    for raw in raw_items or []:
        if not isinstance(raw, dict):
            continue
        items.append(
            QuoteItemInput(
                description=str(raw.get("description") or "").strip(),
                quantity=parse_int(raw.get("quantity"), default=1),
                unit_price=parse_currency(raw.get("unit_price")),
            )
        )
    return items


class QuoteService:
    def __init__(
        self,
        repository: QuoteRepository | None = None,
        client_repository: ClientRepository | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.repository = repository or QuoteRepository()
        self.client_repository = client_repository or ClientRepository()
        self.clock = clock or now_sao_paulo

    def next_number(self, db) -> str:
        """ORC + year + month + a 3-digit sequence that continues after the highest one in use."""
        moment = self.clock()
        prefix = f"{QUOTE_NUMBER_PREFIX}{moment.year:04d}{moment.month:02d}"
        pattern = re.compile(rf"^{prefix}(\d+)$")
        highest = 0
        for number in self.repository.numbers_with_prefix(db, prefix):
            match = pattern.match(number)
            if match:
                highest = max(highest, int(match.group(1)))
        return f"{prefix}{highest + 1:03d}"

    def list_quotes(self, db) -> ServiceOutput:
        return ServiceOutput(payload={"quotes": self.repository.list_all(db)})

    def get_quote(self, db, quote_id: int) -> ServiceOutput:
        quote = self._require(db, quote_id)
        quote["items"] = self.repository.list_items(db, quote_id)
        return ServiceOutput(payload={"quote": quote})

    def save_quote(
        self,
        db,
        *,
        actor: Actor,
        save_input: QuoteSaveInput,
        company_defaults: Dict[str, str] | None = None,
        quote_id: int | None = None,
    ) -> ServiceOutput:
        existing = self._require(db, quote_id) if quote_id is not None else None

        if not save_input.client_id:
            raise ValidationError(code="quote_client_required")
        client = self.client_repository.get_by_id(db, int(save_input.client_id))
        if not client:
            raise NotFoundError(code="client_not_found")
        if not save_input.items:
            raise ValidationError(code="quote_items_required")
        if any(not item.description for item in save_input.items):
            raise ValidationError(code="quote_item_description_required")

        status = normalize_status("quote", save_input.status or QUOTE_INITIAL_STATUS)
        if status is None:
            raise ValidationError(code="status_invalid")

        lines = []
        for item in save_input.items:
            quantity = max(1, int(item.quantity or 1))
            unit_price = round(float(item.unit_price or 0), 2)
            lines.append(
                {
                    "description": item.description,
                    "quantity": quantity,
                    "unit_price": unit_price,
                    "line_total": round(quantity * unit_price, 2),
                }
            )
        total = round(sum(line["line_total"] for line in lines), 2)

        number = str(save_input.number or "").strip().upper()
        if not number:
            number = existing["number"] if existing else self.next_number(db)
        if self.repository.number_exists(db, number, exclude_id=quote_id):
            raise ConflictError(code="quote_number_exists")

        defaults = dict(company_defaults or {})
        company = {
            name: str(save_input.company.get(name) or (existing or {}).get(name) or defaults.get(name) or "").strip()
            for name in COMPANY_FIELDS
        }
        values: Dict[str, Any] = {
            "number": number,
            "date": parse_date(save_input.date),
            "client_id": int(client["id"]),
            "client_name": client.get("legal_name") or "",
            "notes": str(save_input.notes or "").strip(),
            "total_amount": total,
            "status": status,
            **company,
        }

        try:
            if existing is None:
                values["created_by"] = actor.user_id
                quote_id = self.repository.insert(db, values)
            else:
                self.repository.update_fields(db, int(existing["id"]), values)
        except Exception as exc:
            if not is_unique_violation(exc):
                raise
            db.rollback()
            raise ConflictError(code="quote_number_exists") from exc
        self.repository.replace_items(db, int(quote_id), lines)

        logging.getLogger("controle_pedidos").info(
            "quote_saved",
            extra={"quote_id": quote_id, "quote_number": number, "items": len(lines)},
        )
        output = self.get_quote(db, int(quote_id)).payload
        output["message"] = success_message("quote_saved" if existing is None else "quote_updated")
        return ServiceOutput(payload=output, status_code=201 if existing is None else 200)

    def delete_quote(self, db, quote_id: int) -> ServiceOutput:
        self._require(db, quote_id)
        self.repository.delete_with_items(db, quote_id)
        return ServiceOutput(payload={"deleted": True, "message": success_message("deleted")})

    def render_pdf(self, db, quote_id: int, *, logo: str | None = None) -> tuple[bytes, str]:
        quote = self._require(db, quote_id)
        items = self.repository.list_items(db, quote_id)
        client = self.client_repository.get_by_id(db, int(quote["client_id"])) if quote.get("client_id") else None
        return build_quote_pdf(quote, items, client, logo=logo), quote_pdf_filename(quote)

    def _require(self, db, quote_id: int) -> dict:
        quote = self.repository.get_by_id(db, quote_id)
        if not quote:
            raise NotFoundError(code="quote_not_found")
        return quote
