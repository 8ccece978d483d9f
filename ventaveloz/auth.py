"""
Authentication collaborator.

Login and registration return a Credentials value that callers pass
explicitly into ApiClient; nothing here keeps a process-wide token.
"""

from dataclasses import dataclass
from typing import Dict, Any, Optional

from ventaveloz.models import Role, User, ROLE_WIRE


@dataclass(frozen=True)
class Credentials:
    """Bearer token plus the user it belongs to."""

    token: str
    user: Optional[User] = None

    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


def credentials_from_response(data: Dict[str, Any]) -> Credentials:
    """Build Credentials from a login/registration response body."""
    token = data.get("token")
    if not token:
        raise ValueError("Response carries no token")
    user = User.from_wire(data) if data.get("_id") or data.get("id") else None
    return Credentials(token=token, user=user)


class AuthClient:
    """Login/registration against /usuarios."""

    def __init__(self, api):
        self.api = api

    async def login(self, email: str, password: str) -> Credentials:
        data = await self.api.request(
            "POST",
            "/usuarios/login",
            "Error al iniciar sesión",
            json={"correo": email, "contrasena": password},
            authenticated=False,
        )
        return credentials_from_response(data)

    async def register(
        self, name: str, email: str, password: str, role: Role = Role.WAITER
    ) -> Credentials:
        data = await self.api.request(
            "POST",
            "/usuarios/registro",
            "Error al registrar usuario",
            json={
                "nombre": name,
                "correo": email,
                "contrasena": password,
                "rol": ROLE_WIRE[Role(role)],
            },
            authenticated=False,
        )
        return credentials_from_response(data)
