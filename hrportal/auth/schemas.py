"""Auth Pydantic v2 schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from hrportal.common.constants import PRIVILEGED_ROLES, UserRole


class AuthContext(BaseModel):
    """Identity of the caller, resolved once per request by the auth layer
    and passed explicitly into every workflow call."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    role: UserRole
    session_id: int
    csrf_token: str

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES


class SessionTokens(BaseModel):
    """Bearer token plus the CSRF token bound to the same session."""

    access_token: str
    csrf_token: str
    token_type: str = "bearer"
    expires_in: int
