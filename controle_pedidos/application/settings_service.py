from __future__ import annotations

import base64
import binascii

from controle_pedidos.documents.quote_pdf import logo_summary
from controle_pedidos.domain.contracts import Actor, ServiceOutput
from controle_pedidos.errors import ValidationError
from controle_pedidos.infrastructure.repositories import SettingsRepository
from controle_pedidos.policies import require_admin
from controle_pedidos.ui_strings import success_message


LOGO_SETTING_KEY = "branding.logo"
THEMES = ("light", "dark")
_LOGO_PREFIXES = ("data:image/png;base64,", "data:image/jpeg;base64,", "data:image/jpg;base64,")


def normalize_theme(value: str | None) -> str:
    theme = str(value or "").strip().lower()
    if theme not in THEMES:
        raise ValidationError(code="theme_invalid")
    return theme


class SettingsService:
    def __init__(self, repository: SettingsRepository | None = None) -> None:
        self.repository = repository or SettingsRepository()

    def logo(self, db) -> str | None:
        return self.repository.get(db, LOGO_SETTING_KEY)

    def get_logo(self, db) -> ServiceOutput:
        data_url = self.logo(db)
        return ServiceOutput(payload={"logo": data_url, "image": logo_summary(data_url) if data_url else None})

    def save_logo(self, db, *, actor: Actor, data_url: str, max_bytes: int) -> ServiceOutput:
        require_admin(actor)
        raw = str(data_url or "").strip()
        prefix = next((item for item in _LOGO_PREFIXES if raw.lower().startswith(item)), None)
        if prefix is None:
            raise ValidationError(code="logo_invalid")
        try:
            blob = base64.b64decode(raw[len(prefix):], validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValidationError(code="logo_invalid") from exc
        if len(blob) > max_bytes:
            raise ValidationError(code="logo_too_large", payload={"max_bytes": max_bytes})
        if not (blob.startswith(b"\x89PNG\r\n\x1a\n") or blob.startswith(b"\xff\xd8")):
            raise ValidationError(code="logo_invalid")
        self.repository.set(db, LOGO_SETTING_KEY, raw)
        return ServiceOutput(
            payload={"logo": raw, "image": logo_summary(raw), "message": success_message("logo_saved")}
        )

    def delete_logo(self, db, *, actor: Actor) -> ServiceOutput:
        require_admin(actor)
        self.repository.delete(db, LOGO_SETTING_KEY)
        return ServiceOutput(payload={"logo": None, "message": success_message("logo_removed")})
