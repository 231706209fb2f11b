"""Auth dependencies — JWT validation, session lookup, role enforcement."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from fastapi import Depends, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.models import UserSession
from hrportal.auth.schemas import AuthContext
from hrportal.auth.service import hash_token
from hrportal.common.constants import UserRole
from hrportal.common.exceptions import ForbiddenException
from hrportal.config import settings
from hrportal.core_hr.models import Employee
from hrportal.database import get_db

logger = logging.getLogger(__name__)


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


# ── Core dependency ─────────────────────────────────────────────────

async def get_auth_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """Validate JWT, verify the session row, and return the caller's AuthContext."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired.")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")

    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type.")

    result = await db.execute(
        select(UserSession)
        .join(Employee, UserSession.employee_id == Employee.id)
        .where(
            UserSession.token_hash == hash_token(token),
            UserSession.is_revoked.is_(False),
            Employee.is_active.is_(True),
        ),
    )
    session = result.scalars().first()
    if session is None or _as_utc(session.expires_at) <= datetime.now(timezone.utc):
        raise HTTPException(status_code=401, detail="Session invalid or expired.")

    try:
        role = UserRole(payload.get("role", UserRole.employee.value))
    except ValueError:
        role = UserRole.employee

    return AuthContext(
        user_id=session.employee_id,
        role=role,
        session_id=session.id,
        csrf_token=session.csrf_token,
    )


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership."""

    async def _check(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
        if ctx.role not in allowed_roles:
            logger.warning(
                "Role %s denied for employee %s; required %s",
                ctx.role.value,
                ctx.user_id,
                [r.value for r in allowed_roles],
            )
            raise ForbiddenException(
                detail=f"Role '{ctx.role.value}' is not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return ctx

    return _check
