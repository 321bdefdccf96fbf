from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class ServiceOutput:
    payload: Dict[str, Any]
    status_code: int = 200


@dataclass(frozen=True)
class Actor:
    """Who is calling: the logged-in user as seen by the services."""

    user_id: int
    role: str
    name: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class AuthLoginInput:
    email: str
    password: str


@dataclass(frozen=True)
class AuthUser:
    id: int
    name: str
    email: str
    role: str


@dataclass(frozen=True)
class OrderReserveInput:
    period_id: int
    order_number: str


@dataclass(frozen=True)
class OrderUpdateInput:
    order_id: int
    fields: Dict[str, Any]


@dataclass(frozen=True)
class OrderImportInput:
    period_id: int
    csv_text: str
    dry_run: bool = False


@dataclass(frozen=True)
class UserSaveInput:
    name: str
    email: str
    role: str
    password: str | None = None


@dataclass(frozen=True)
class QuoteItemInput:
    description: str
    quantity: int
    unit_price: float


@dataclass(frozen=True)
class QuoteSaveInput:
    client_id: int | None
    date: str | None
    items: List[QuoteItemInput]
    number: str | None = None
    status: str = "draft"
    notes: str = ""
    company: Dict[str, str] = field(default_factory=dict)
