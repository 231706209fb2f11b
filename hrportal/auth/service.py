"""Auth service — JWT issuance, CSRF binding, session lifecycle.

The interactive login flow lives outside this service; it calls
``open_session`` once credentials have been verified.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone

from jose import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.models import UserSession
from hrportal.auth.schemas import AuthContext, SessionTokens
from hrportal.common.constants import UserRole
from hrportal.common.exceptions import ForbiddenException, NotFoundException
from hrportal.config import settings
from hrportal.core_hr.models import Employee

logger = logging.getLogger(__name__)


# ── Token helpers ───────────────────────────────────────────────────

def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def create_access_token(
    employee_id: int,
    role: UserRole,
    *,
    expires_delta: timedelta | None = None,
) -> str:
    """Encode a signed access token carrying the employee id and role."""
    expires_delta = expires_delta or timedelta(hours=settings.SESSION_EXPIRY_HOURS)
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "type": "access",
        "jti": secrets.token_hex(8),
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def new_csrf_token() -> str:
    return secrets.token_hex(32)


# ── Session management ──────────────────────────────────────────────

async def open_session(db: AsyncSession, employee_id: int) -> SessionTokens:
    """Issue a bearer token and a session-bound CSRF token for an active employee."""
    result = await db.execute(
        select(Employee).where(Employee.id == employee_id, Employee.is_active.is_(True)),
    )
    employee = result.scalars().first()
    if employee is None:
        raise NotFoundException("Employee", employee_id)

    access_token = create_access_token(employee.id, employee.role)
    csrf_token = new_csrf_token()
    session = UserSession(
        employee_id=employee.id,
        token_hash=hash_token(access_token),
        csrf_token=csrf_token,
        expires_at=datetime.now(timezone.utc)
        + timedelta(hours=settings.SESSION_EXPIRY_HOURS),
    )
    db.add(session)
    await db.flush()

    logger.info("Opened session %s for employee %s", session.id, employee.id)
    return SessionTokens(
        access_token=access_token,
        csrf_token=csrf_token,
        expires_in=settings.SESSION_EXPIRY_HOURS * 3600,
    )


async def revoke_session(db: AsyncSession, token_hash: str) -> None:
    """Mark a session as revoked by its token hash."""
    result = await db.execute(
        select(UserSession).where(UserSession.token_hash == token_hash),
    )
    session = result.scalars().first()
    if session:
        session.is_revoked = True
        await db.flush()


# ── CSRF ────────────────────────────────────────────────────────────

def verify_csrf(ctx: AuthContext, submitted: str | None) -> None:
    """Reject a mutating action whose CSRF token does not match the session's."""
    if not submitted or not hmac.compare_digest(submitted, ctx.csrf_token):
        logger.warning(
            "CSRF token mismatch for employee %s (session %s)",
            ctx.user_id,
            ctx.session_id,
        )
        raise ForbiddenException(detail="Invalid CSRF token.")
