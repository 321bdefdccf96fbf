from __future__ import annotations

import logging
from typing import Any, Dict

from werkzeug.security import generate_password_hash

from controle_pedidos.domain.contracts import Actor, ServiceOutput, UserSaveInput
from controle_pedidos.errors import ConflictError, NotFoundError, ValidationError
from controle_pedidos.infrastructure.repositories import UserRepository
from controle_pedidos.policies import VALID_ROLES, require_admin
from controle_pedidos.ui_strings import success_message


class UserService:
    def __init__(self, repository: UserRepository | None = None) -> None:
        self.repository = repository or UserRepository()

    def list_users(self, db, *, actor: Actor) -> ServiceOutput:
        require_admin(actor)
        users = [self.repository.public_view(user) for user in self.repository.list_all(db)]
        return ServiceOutput(payload={"users": users})

    def create_user(self, db, *, actor: Actor, save_input: UserSaveInput) -> ServiceOutput:
        require_admin(actor)
        name, email, role = self._validated(save_input)
        if not save_input.password:
            raise ValidationError(code="user_fields_required")
        if self.repository.email_exists(db, email):
            raise ConflictError(code="email_already_registered")
        user_id = self.repository.insert(
            db,
            {
                "name": name,
                "email": email,
                "password_hash": generate_password_hash(save_input.password),
                "role": role,
                "active": True,
                "created_by": actor.user_id,
            },
        )
        logging.getLogger("controle_pedidos").info("user_created", extra={"user_id": user_id, "role": role})
        return ServiceOutput(
            payload={
                "user": self.repository.public_view(self.repository.get_by_id(db, user_id)),
                "message": success_message("user_created"),
            },
            status_code=201,
        )

    def update_user(self, db, *, actor: Actor, user_id: int, save_input: UserSaveInput) -> ServiceOutput:
        """Password is only replaced when a new one is sent."""
        require_admin(actor)
        self._require(db, user_id)
        name, email, role = self._validated(save_input)
        if self.repository.email_exists(db, email, exclude_id=user_id):
            raise ConflictError(code="email_already_registered")
        values: Dict[str, Any] = {"name": name, "email": email, "role": role}
        if save_input.password:
            values["password_hash"] = generate_password_hash(save_input.password)
        self.repository.update_fields(db, user_id, values)
        return ServiceOutput(
            payload={
                "user": self.repository.public_view(self.repository.get_by_id(db, user_id)),
                "message": success_message("user_updated"),
            }
        )

    def toggle_active(self, db, *, actor: Actor, user_id: int) -> ServiceOutput:
        require_admin(actor)
        if int(user_id) == actor.user_id:
            raise ValidationError(code="cannot_toggle_self")
        user = self._require(db, user_id)
        self.repository.update_fields(db, user_id, {"active": not bool(user.get("active"))})
        return ServiceOutput(
            payload={
                "user": self.repository.public_view(self.repository.get_by_id(db, user_id)),
                "message": success_message("user_updated"),
            }
        )

    @staticmethod
    def _validated(save_input: UserSaveInput) -> tuple[str, str, str]:
        name = str(save_input.name or "").strip()
        email = str(save_input.email or "").strip().lower()
        if not name or not email:
            raise ValidationError(code="user_fields_required")
        role = str(save_input.role or "collaborator").strip().lower()
        if role not in VALID_ROLES:
            raise ValidationError(code="role_invalid")
        return name, email, role

    def _require(self, db, user_id: int) -> dict:
        user = self.repository.get_by_id(db, user_id)
        if not user:
            raise NotFoundError(code="user_not_found")
        return user
