"""Dashboard router — read-only endpoints for HR dashboard widgets."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.dependencies import require_role
from hrportal.auth.schemas import AuthContext
from hrportal.common.constants import UserRole
from hrportal.dashboard.schemas import TimeOffReport
from hrportal.dashboard.service import TimeOffReportService
from hrportal.database import get_db

router = APIRouter()


# ── GET /timeoff-report ─────────────────────────────────────────────

@router.get("/timeoff-report", response_model=TimeOffReport)
async def timeoff_report(
    ctx: AuthContext = Depends(require_role(UserRole.hr, UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    """Status, type, department and monthly breakdown of time-off requests."""
    return await TimeOffReportService.get_timeoff_report(db)
