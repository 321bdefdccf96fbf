from __future__ import annotations

import logging
from typing import Any, Dict, List

from controle_pedidos.csv_import import parse_sellers_csv
from controle_pedidos.domain.contracts import Actor, ServiceOutput
from controle_pedidos.errors import ConflictError, NotFoundError, ValidationError
from controle_pedidos.infrastructure.repositories import SellerRepository
from controle_pedidos.observability import observe_csv_rows
from controle_pedidos.policies import require_admin
from controle_pedidos.ui_strings import get_ui_text, success_message


AUTOCOMPLETE_LIMIT = 10


class SellerService:
    def __init__(self, repository: SellerRepository | None = None) -> None:
        self.repository = repository or SellerRepository()

    def list_sellers(self, db, *, active_only: bool = False) -> ServiceOutput:
        return ServiceOutput(payload={"sellers": self.repository.list_filtered(db, active_only=active_only)})

    def autocomplete(self, db, term: str | None) -> ServiceOutput:
        needle = str(term or "").strip()
        if not needle:
            return ServiceOutput(payload={"sellers": []})
        return ServiceOutput(
            payload={"sellers": self.repository.search_active(db, needle, limit=AUTOCOMPLETE_LIMIT)}
        )

    def resolve(self, db, term: str | None) -> ServiceOutput:
        """Exact (case-insensitive) active match first, then the first partial match."""
        needle = str(term or "").strip()
        if not needle:
            return ServiceOutput(payload={"seller": None})
        exact = self.repository.find_by_name(db, needle)
        if exact and exact.get("active"):
            return ServiceOutput(payload={"seller": exact})
        candidates = self.repository.search_active(db, needle, limit=1)
        return ServiceOutput(payload={"seller": candidates[0] if candidates else None})

    def create_seller(self, db, *, actor: Actor, name: str) -> ServiceOutput:
        require_admin(actor)
        cleaned = str(name or "").strip()
        if not cleaned:
            raise ValidationError(code="seller_name_required")
        if self.repository.find_by_name(db, cleaned):
            raise ConflictError(code="seller_exists")
        seller_id = self.repository.insert(db, {"name": cleaned, "active": True})
        return ServiceOutput(
            payload={"seller": self.repository.get_by_id(db, seller_id), "message": success_message("seller_created")},
            status_code=201,
        )

    def update_seller(self, db, *, actor: Actor, seller_id: int, payload: Dict[str, Any]) -> ServiceOutput:
        require_admin(actor)
        seller = self._require(db, seller_id)
        values: Dict[str, Any] = {}
        if "name" in payload:
            cleaned = str(payload.get("name") or "").strip()
            if not cleaned:
                raise ValidationError(code="seller_name_required")
            existing = self.repository.find_by_name(db, cleaned)
            if existing and int(existing["id"]) != int(seller["id"]):
                raise ConflictError(code="seller_exists")
            values["name"] = cleaned
        if "active" in payload:
            values["active"] = bool(payload.get("active"))
        if not values:
            raise ValidationError(code="no_changes")
        self.repository.update_fields(db, seller_id, values, touch=False)
        return ServiceOutput(
            payload={"seller": self.repository.get_by_id(db, seller_id), "message": success_message("seller_updated")}
        )

    def delete_seller(self, db, *, actor: Actor, seller_id: int) -> ServiceOutput:
        require_admin(actor)
        self._require(db, seller_id)
        self.repository.delete(db, seller_id)
        return ServiceOutput(payload={"deleted": True, "message": success_message("deleted")})

    def import_sellers(self, db, *, actor: Actor, csv_text: str, dry_run: bool = False) -> ServiceOutput:
        require_admin(actor)
        rows, errors = parse_sellers_csv(csv_text)
        if dry_run:
            return ServiceOutput(payload={"valid_rows": rows, "errors": errors})

        imported = 0
        skipped: List[str] = []
        for row in rows:
            if self.repository.find_by_name(db, row["name"]):
                skipped.append(get_ui_text("import.skipped_existing_seller").format(name=row["name"]))
                continue
            self.repository.insert(db, {"name": row["name"], "active": True})
            imported += 1

        observe_csv_rows("sellers", "imported", imported)
        observe_csv_rows("sellers", "skipped", len(skipped))
        observe_csv_rows("sellers", "rejected", len(errors))
        logging.getLogger("controle_pedidos").info(
            "csv_import_finished",
            extra={"kind": "sellers", "imported": imported, "skipped": len(skipped), "rejected": len(errors)},
        )
        return ServiceOutput(
            payload={
                "imported": imported,
                "skipped": skipped,
                "errors": errors,
                "message": success_message("sellers_imported", count=imported),
            }
        )

    def _require(self, db, seller_id: int) -> dict:
        seller = self.repository.get_by_id(db, seller_id)
        if not seller:
            raise NotFoundError(code="seller_not_found")
        return seller
