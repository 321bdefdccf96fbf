from __future__ import annotations

from werkzeug.security import check_password_hash

from controle_pedidos.domain.contracts import AuthLoginInput, AuthUser
from controle_pedidos.infrastructure.repositories import UserRepository
from controle_pedidos.policies import normalize_role


class AuthService:
    def __init__(self, repository: UserRepository | None = None) -> None:
        self.repository = repository or UserRepository()

    def login(self, db, auth_input: AuthLoginInput) -> AuthUser | None:
        """Return the user for an email/password pair, or None. Inactive users never match."""
        email = (auth_input.email or "").strip().lower()
        password = auth_input.password or ""
        if not email or not password:
            return None

        user = self.repository.find_by_email(db, email)
        if not user or not user.get("active"):
            return None
        if not check_password_hash(user["password_hash"], password):
            return None
        return AuthUser(
            id=int(user["id"]),
            name=user.get("name") or user["email"].split("@")[0],
            email=user["email"],
            role=normalize_role(user.get("role")),
        )

    def session_user(self, db, user_id: int | None) -> dict | None:
        if user_id is None:
            return None
        user = self.repository.get_by_id(db, int(user_id))
        if not user or not user.get("active"):
            return None
        return self.repository.public_view(user)
