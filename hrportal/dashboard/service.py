"""Dashboard service — read-only aggregation over time-off requests.

Counts are GROUP BY at DB level. The monthly trend is bucketed in Python so
the same code runs on PostgreSQL and SQLite.
"""

from __future__ import annotations

from calendar import monthrange
from datetime import date, datetime, time, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.common.constants import (
    TREND_MONTHS,
    UNASSIGNED_DEPARTMENT,
    LeaveType,
    RequestStatus,
)
from hrportal.core_hr.models import Employee
from hrportal.dashboard.schemas import DepartmentCount, MonthlyTrendPoint, TimeOffReport
from hrportal.timeoff import days
from hrportal.timeoff.models import TimeOffRequest


def _today() -> date:
    return days.today()


def _shift_month(d: date, months: int) -> date:
    """First day of the month *months* away from *d*'s month."""
    index = d.year * 12 + (d.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


class TimeOffReportService:
    """Async time-off aggregation queries."""

    @staticmethod
    async def _count_by_status(db: AsyncSession) -> dict[RequestStatus, int]:
        result = await db.execute(
            select(TimeOffRequest.status, func.count(TimeOffRequest.id))
            .group_by(TimeOffRequest.status)
        )
        counts = {s: 0 for s in RequestStatus}
        for status, count in result.all():
            counts[RequestStatus(status)] = count
        return counts

    @staticmethod
    async def _count_by_leave_type(db: AsyncSession) -> dict[LeaveType, int]:
        result = await db.execute(
            select(TimeOffRequest.leave_type, func.count(TimeOffRequest.id))
            .group_by(TimeOffRequest.leave_type)
        )
        counts = {lt: 0 for lt in LeaveType}
        for leave_type, count in result.all():
            counts[LeaveType(leave_type)] = count
        return counts

    @staticmethod
    async def _count_current_month(db: AsyncSession, today: date) -> int:
        month_start = today.replace(day=1)
        month_end = today.replace(day=monthrange(today.year, today.month)[1])
        result = await db.execute(
            select(func.count(TimeOffRequest.id)).where(
                TimeOffRequest.start_date <= month_end,
                TimeOffRequest.end_date >= month_start,
            )
        )
        return result.scalar() or 0

    @staticmethod
    async def _count_by_department(db: AsyncSession) -> list[DepartmentCount]:
        result = await db.execute(
            select(Employee.department, func.count(TimeOffRequest.id))
            .join(Employee, TimeOffRequest.employee_id == Employee.id)
            .group_by(Employee.department)
        )
        # NULL and "" both land in the Unassigned bucket
        counts: dict[str, int] = {}
        for department, count in result.all():
            name = department or UNASSIGNED_DEPARTMENT
            counts[name] = counts.get(name, 0) + count
        return [
            DepartmentCount(department=name, count=count)
            for name, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
        ]

    @staticmethod
    async def _monthly_trend(db: AsyncSession, today: date) -> list[MonthlyTrendPoint]:
        window_start = _shift_month(today, -(TREND_MONTHS - 1))
        buckets = {
            _shift_month(window_start, i).strftime("%Y-%m"): 0
            for i in range(TREND_MONTHS)
        }

        result = await db.execute(
            select(TimeOffRequest.created_at).where(
                TimeOffRequest.created_at
                >= datetime.combine(window_start, time.min, tzinfo=timezone.utc)
            )
        )
        for (created_at,) in result.all():
            key = created_at.strftime("%Y-%m")
            if key in buckets:
                buckets[key] += 1

        return [MonthlyTrendPoint(month=m, count=c) for m, c in buckets.items()]

    # ═════════════════════════════════════════════════════════════════
    # GET /timeoff-report
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_timeoff_report(db: AsyncSession) -> TimeOffReport:
        """Status, type, current-month, department and trend aggregates."""
        today = _today()
        return TimeOffReport(
            by_status=await TimeOffReportService._count_by_status(db),
            by_leave_type=await TimeOffReportService._count_by_leave_type(db),
            current_month_count=await TimeOffReportService._count_current_month(db, today),
            by_department=await TimeOffReportService._count_by_department(db),
            monthly_trend=await TimeOffReportService._monthly_trend(db, today),
        )
