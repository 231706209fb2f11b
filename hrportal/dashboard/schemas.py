"""Dashboard Pydantic v2 schemas — response models for the time-off report."""

from __future__ import annotations

from pydantic import BaseModel, Field

from hrportal.common.constants import LeaveType, RequestStatus


# ═════════════════════════════════════════════════════════════════════
# GET /timeoff-report
# ═════════════════════════════════════════════════════════════════════


class DepartmentCount(BaseModel):
    """Requests submitted by employees of one department."""

    department: str
    count: int = 0


class MonthlyTrendPoint(BaseModel):
    """Requests submitted in one calendar month."""

    month: str = Field(..., description="YYYY-MM")
    count: int = 0


class TimeOffReport(BaseModel):
    """Aggregates behind the HR time-off dashboard charts."""

    by_status: dict[RequestStatus, int]
    by_leave_type: dict[LeaveType, int]
    current_month_count: int = Field(
        ..., description="Requests whose date range touches the current month"
    )
    by_department: list[DepartmentCount] = Field(default_factory=list)
    monthly_trend: list[MonthlyTrendPoint] = Field(
        default_factory=list,
        description="Submissions per month, oldest first",
    )
