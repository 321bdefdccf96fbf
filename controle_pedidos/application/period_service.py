from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from controle_pedidos.domain.contracts import Actor, ServiceOutput
from controle_pedidos.errors import ValidationError
from controle_pedidos.formatting import current_period_descriptor, now_sao_paulo
from controle_pedidos.infrastructure.repositories import PeriodRepository
from controle_pedidos.policies import require_admin
from controle_pedidos.ui_strings import success_message


class PeriodService:
    def __init__(
        self,
        repository: PeriodRepository | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.repository = repository or PeriodRepository()
        self.clock = clock or now_sao_paulo

    def list_periods(self, db) -> ServiceOutput:
        """Newest first. An empty table gets the current month created on the spot."""
        if self.repository.count(db) == 0:
            descriptor = current_period_descriptor(self.clock())
            period_id = self.repository.insert(db, descriptor)
            logging.getLogger("controle_pedidos").info(
                "period_auto_created",
                extra={"period_id": period_id, "period_name": descriptor["name"]},
            )
        return ServiceOutput(payload={"periods": self.repository.list_all(db)})

    def create_period(self, db, *, actor: Actor, name: str) -> ServiceOutput:
        require_admin(actor)
        cleaned = str(name or "").strip()
        if not cleaned:
            raise ValidationError(code="period_name_required")
        descriptor = current_period_descriptor(self.clock())
        period_id = self.repository.insert(
            db,
            {"name": cleaned, "month": descriptor["month"], "year": descriptor["year"]},
        )
        return ServiceOutput(
            payload={
                "period": self.repository.get_by_id(db, period_id),
                "message": success_message("period_created"),
            },
            status_code=201,
        )
