from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone


# America/Sao_Paulo has had no DST since 2019; a fixed offset keeps dates stable.
SAO_PAULO_TZ = timezone(timedelta(hours=-3), "America/Sao_Paulo")

MONTH_NAMES_PT = (
    "Janeiro",
    "Fevereiro",
    "Março",
    "Abril",
    "Maio",
    "Junho",
    "Julho",
    "Agosto",
    "Setembro",
    "Outubro",
    "Novembro",
    "Dezembro",
)

_LEADING_NUMBER = re.compile(r"^\s*([-+]?(?:\d+(?:\.\d*)?|\.\d+))")
_LEADING_INT = re.compile(r"^\s*([-+]?\d+)")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def now_sao_paulo() -> datetime:
    return datetime.now(SAO_PAULO_TZ)


def today_sao_paulo() -> str:
    return now_sao_paulo().date().isoformat()


def format_currency(value: float | int | str | None) -> str:
    """Render an amount the pt-BR way: 1550.2 -> "1.550,20"."""
    try:
        amount = float(value or 0)
    except (TypeError, ValueError):
        amount = 0.0
    rendered = f"{amount:,.2f}"
    return rendered.replace(",", "_").replace(".", ",").replace("_", ".")


def format_money_brl(value: float | int | str | None) -> str:
    return f"R$ {format_currency(value)}"


def parse_currency(value: str | float | int | None) -> float:
    """Parse "1.550,20" into 1550.2. Anything unreadable becomes 0."""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    raw = str(value).strip()
    if not raw:
        return 0.0
    cleaned = raw.replace(".", "").replace(",", ".", 1)
    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        return 0.0
    try:
        return float(match.group(1))
    except ValueError:
        return 0.0


def parse_int(value: str | int | None, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    match = _LEADING_INT.match(str(value or ""))
    if not match:
        return default
    return int(match.group(1))


def parse_date(value: str | None, today: str | None = None) -> str:
    """Normalize DD/MM/YYYY or YYYY-MM-DD to ISO; fall back to today in UTC-3."""
    fallback = today or today_sao_paulo()
    raw = str(value or "").strip()
    if not raw:
        return fallback

    if "/" in raw:
        parts = raw.split("/")
        if len(parts) == 3:
            day, month, year = (part.strip() for part in parts)
            try:
                return date(int(year), int(month), int(day)).isoformat()
            except ValueError:
                return fallback
        return fallback

    if _ISO_DATE.match(raw):
        try:
            date.fromisoformat(raw)
        except ValueError:
            return fallback
        return raw

    return fallback


def format_date_br(value: str | date | None) -> str:
    if not value:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    raw = str(value).strip()[:10]
    try:
        return date.fromisoformat(raw).strftime("%d/%m/%Y")
    except ValueError:
        return str(value)


def add_days(iso_date: str | None, days: int) -> str | None:
    raw = str(iso_date or "").strip()[:10]
    if not raw:
        return None
    try:
        return (date.fromisoformat(raw) + timedelta(days=days)).isoformat()
    except ValueError:
        return None


def current_period_descriptor(now: datetime | None = None) -> dict:
    moment = now or now_sao_paulo()
    return {
        "name": f"{MONTH_NAMES_PT[moment.month - 1]} {moment.year}",
        "month": moment.month,
        "year": moment.year,
    }
