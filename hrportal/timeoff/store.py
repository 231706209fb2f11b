"""Time-off request store — persistence, listing, filtering and status updates.

Every list result is augmented with ``business_days`` (weekdays that are not
company holidays) and ``total_calendar_days`` (inclusive span). Sorting goes
through a fixed allow-list; an unrecognised order falls back to newest first.
"""

from __future__ import annotations

import logging
from calendar import monthrange
from datetime import date, datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrportal.common.constants import (
    DEFAULT_ORDER_BY,
    LeaveType,
    OrderBy,
    RequestStatus,
)
from hrportal.common.exceptions import (
    NotFoundException,
    PersistenceException,
    ValidationException,
)
from hrportal.common.filters import apply_search
from hrportal.core_hr.models import Employee
from hrportal.timeoff import days
from hrportal.timeoff.models import TimeOffRequest
from hrportal.timeoff.schemas import (
    CalendarEntry,
    LeaveCalendarOut,
    TimeOffFilters,
    TimeOffRequestOut,
)

logger = logging.getLogger(__name__)


_ORDER_CLAUSES = {
    OrderBy.created_at_desc: (TimeOffRequest.created_at.desc(), TimeOffRequest.id.desc()),
    OrderBy.created_at_asc: (TimeOffRequest.created_at.asc(), TimeOffRequest.id.asc()),
    OrderBy.employee_name_asc: (
        Employee.first_name.asc(),
        Employee.last_name.asc(),
        TimeOffRequest.id.asc(),
    ),
    OrderBy.employee_name_desc: (
        Employee.first_name.desc(),
        Employee.last_name.desc(),
        TimeOffRequest.id.desc(),
    ),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_iso(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


# ═════════════════════════════════════════════════════════════════════
# TimeOffRequestStore
# ═════════════════════════════════════════════════════════════════════


class TimeOffRequestStore:
    """Async CRUD and listing for time-off requests."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def validate_submission(
        leave_type: Any,
        start_date: Any,
        end_date: Any,
    ) -> tuple[LeaveType, date, date]:
        """Parse and check a submission's type and dates.

        Raises ``ValidationException`` with a field-level message for an
        unknown leave type, malformed dates, a reversed range or a start in
        the past.
        """
        try:
            parsed_type = LeaveType(leave_type)
        except ValueError:
            raise ValidationException(
                {"leave_type": ["Please select a valid leave type."]}
            )

        start = _parse_iso(start_date)
        end = _parse_iso(end_date)
        if start is None or end is None:
            raise ValidationException(
                {"start_date": ["Please select valid start and end dates."]}
            )
        if end < start:
            raise ValidationException(
                {"end_date": ["End date cannot be before start date."]}
            )
        if start < days.today():
            raise ValidationException(
                {"start_date": ["Cannot request time off in the past."]}
            )
        return parsed_type, start, end

    @staticmethod
    def _build_request_response(
        req: TimeOffRequest,
        holidays: set[date],
    ) -> TimeOffRequestOut:
        out = TimeOffRequestOut.model_validate(req)
        emp = req.employee
        if emp is not None:
            out.employee_name = emp.full_name
            out.department = emp.department
        out.business_days = days.count_business_days(req.start_date, req.end_date, holidays)
        out.total_calendar_days = days.count_calendar_days(req.start_date, req.end_date)
        return out

    @staticmethod
    async def _build_responses(
        db: AsyncSession,
        requests: Sequence[TimeOffRequest],
    ) -> list[TimeOffRequestOut]:
        """Attach day counts, loading holidays once for the whole batch."""
        if not requests:
            return []
        holidays = await days.get_holiday_dates(
            db,
            min(r.start_date for r in requests),
            max(r.end_date for r in requests),
        )
        return [
            TimeOffRequestStore._build_request_response(r, holidays)
            for r in requests
        ]

    @staticmethod
    def resolve_order_by(raw: Optional[str]) -> OrderBy:
        """Map a caller-supplied order onto the allow-list.

        Accepts ``created_at_desc`` as well as ``"created_at DESC"``; anything
        unrecognised yields the default newest-first order.
        """
        if not raw:
            return DEFAULT_ORDER_BY
        key = "_".join(str(raw).strip().lower().split())
        try:
            return OrderBy(key)
        except ValueError:
            logger.debug("Ignoring unrecognised order_by %r", raw)
            return DEFAULT_ORDER_BY

    # ─────────────────────────────────────────────────────────────────
    # Create
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def create(
        db: AsyncSession,
        employee_id: int,
        leave_type: Any,
        start_date: Any,
        end_date: Any,
        notes: Optional[str] = None,
    ) -> int:
        """Insert a new pending request and return its id."""
        parsed_type, start, end = TimeOffRequestStore.validate_submission(
            leave_type, start_date, end_date,
        )

        req = TimeOffRequest(
            employee_id=employee_id,
            leave_type=parsed_type,
            start_date=start,
            end_date=end,
            notes=(notes or "").strip() or None,
            status=RequestStatus.pending,
            created_at=_utcnow(),
        )
        try:
            db.add(req)
            await db.flush()
        except SQLAlchemyError:
            logger.exception("Failed to insert time-off request for employee %s", employee_id)
            raise PersistenceException("create_request")

        logger.info(
            "Time-off request %s created: employee %s, %s %s..%s",
            req.id,
            employee_id,
            parsed_type.value,
            start,
            end,
        )
        return req.id

    # ─────────────────────────────────────────────────────────────────
    # Read
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get(db: AsyncSession, request_id: int) -> TimeOffRequestOut:
        result = await db.execute(
            select(TimeOffRequest)
            .where(TimeOffRequest.id == request_id)
            .options(selectinload(TimeOffRequest.employee))
            .execution_options(populate_existing=True)
        )
        req = result.scalars().first()
        if req is None:
            raise NotFoundException("TimeOffRequest", request_id)
        return (await TimeOffRequestStore._build_responses(db, [req]))[0]

    @staticmethod
    async def list_pending(db: AsyncSession) -> list[TimeOffRequestOut]:
        """All pending requests, newest submission first."""
        result = await db.execute(
            select(TimeOffRequest)
            .where(TimeOffRequest.status == RequestStatus.pending)
            .options(selectinload(TimeOffRequest.employee))
            .order_by(*_ORDER_CLAUSES[OrderBy.created_at_desc])
        )
        return await TimeOffRequestStore._build_responses(db, result.scalars().all())

    @staticmethod
    async def list_for_employee(
        db: AsyncSession,
        employee_id: int,
    ) -> list[TimeOffRequestOut]:
        """An employee's own request history, newest first."""
        result = await db.execute(
            select(TimeOffRequest)
            .where(TimeOffRequest.employee_id == employee_id)
            .options(selectinload(TimeOffRequest.employee))
            .order_by(*_ORDER_CLAUSES[OrderBy.created_at_desc])
        )
        return await TimeOffRequestStore._build_responses(db, result.scalars().all())

    @staticmethod
    async def list_filtered(
        db: AsyncSession,
        filters: Optional[TimeOffFilters] = None,
        order_by: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[list[TimeOffRequestOut], int]:
        """Filtered, ordered page of requests plus the pre-pagination total.

        Filters combine with AND. ``start_date`` keeps requests starting on
        or after it and ``end_date`` those ending on or before it.
        """
        filters = filters or TimeOffFilters()
        order = TimeOffRequestStore.resolve_order_by(order_by)

        query = (
            select(TimeOffRequest)
            .join(Employee, TimeOffRequest.employee_id == Employee.id)
            .options(selectinload(TimeOffRequest.employee))
        )
        if filters.status:
            query = query.where(TimeOffRequest.status == filters.status)
        if filters.department:
            query = query.where(Employee.department == filters.department)
        if filters.leave_type:
            query = query.where(TimeOffRequest.leave_type == filters.leave_type)
        if filters.employee_id:
            query = query.where(TimeOffRequest.employee_id == filters.employee_id)
        if filters.start_date:
            query = query.where(TimeOffRequest.start_date >= filters.start_date)
        if filters.end_date:
            query = query.where(TimeOffRequest.end_date <= filters.end_date)
        query = apply_search(query, [Employee.first_name, Employee.last_name], filters.search)

        # Count
        count_q = query.with_only_columns(func.count(TimeOffRequest.id)).order_by(None)
        total = (await db.execute(count_q)).scalar_one()

        # Paginate
        result = await db.execute(
            query.order_by(*_ORDER_CLAUSES[order]).offset(max(offset, 0)).limit(limit)
        )
        records = await TimeOffRequestStore._build_responses(db, result.scalars().all())
        return records, total

    @staticmethod
    async def list_departments(db: AsyncSession) -> list[str]:
        """Distinct non-empty departments, alphabetical."""
        result = await db.execute(
            select(Employee.department)
            .where(Employee.department.is_not(None), Employee.department != "")
            .distinct()
            .order_by(Employee.department)
        )
        return list(result.scalars().all())

    @staticmethod
    async def approved_calendar(
        db: AsyncSession,
        year: int,
        month: int,
        employee_id: Optional[int] = None,
    ) -> LeaveCalendarOut:
        """Approved leave overlapping a month, expanded to one entry per day."""
        if not 1 <= month <= 12:
            raise ValidationException({"month": ["Month must be between 1 and 12."]})

        _, last_day = monthrange(year, month)
        month_start = date(year, month, 1)
        month_end = date(year, month, last_day)

        query = (
            select(TimeOffRequest)
            .where(
                TimeOffRequest.status == RequestStatus.approved,
                TimeOffRequest.start_date <= month_end,
                TimeOffRequest.end_date >= month_start,
            )
            .options(selectinload(TimeOffRequest.employee))
            .order_by(TimeOffRequest.start_date, TimeOffRequest.id)
        )
        if employee_id is not None:
            query = query.where(TimeOffRequest.employee_id == employee_id)
        result = await db.execute(query)

        calendar: dict[str, list[CalendarEntry]] = {}
        for req in result.scalars().all():
            entry = CalendarEntry(
                employee_id=req.employee_id,
                name=req.employee.full_name,
                leave_type=req.leave_type,
            )
            first = max(req.start_date, month_start)
            last = min(req.end_date, month_end)
            for day in days.iter_days(first, last):
                calendar.setdefault(day.isoformat(), []).append(entry)

        return LeaveCalendarOut(
            year=year,
            month=month,
            days=dict(sorted(calendar.items())),
        )

    # ─────────────────────────────────────────────────────────────────
    # Status transitions
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def set_status(
        db: AsyncSession,
        request_id: int,
        status: RequestStatus,
        reviewed_by: Optional[int] = None,
    ) -> bool:
        """Move a pending request to *status*.

        The update only matches rows still pending, so a request that was
        already decided (including by a concurrent reviewer) is left alone
        and ``False`` is returned.
        """
        if status == RequestStatus.pending:
            raise ValidationException({"status": ["Invalid status."]})

        try:
            result = await db.execute(
                update(TimeOffRequest)
                .where(
                    TimeOffRequest.id == request_id,
                    TimeOffRequest.status == RequestStatus.pending,
                )
                .values(status=status, reviewed_by=reviewed_by, reviewed_at=_utcnow())
            )
        except SQLAlchemyError:
            logger.exception(
                "Failed to set status %s on time-off request %s",
                status.value,
                request_id,
            )
            raise PersistenceException("set_status")
        return result.rowcount == 1

    @staticmethod
    async def approve_many(
        db: AsyncSession,
        request_ids: Sequence[int],
        reviewed_by: Optional[int] = None,
    ) -> list[int]:
        """Approve every still-pending request among *request_ids*.

        Returns the ids actually changed; ids already decided or unknown are
        skipped, so repeating the call changes nothing.
        """
        ids = sorted(set(request_ids))
        if not ids:
            return []

        try:
            result = await db.execute(
                update(TimeOffRequest)
                .where(
                    TimeOffRequest.id.in_(ids),
                    TimeOffRequest.status == RequestStatus.pending,
                )
                .values(
                    status=RequestStatus.approved,
                    reviewed_by=reviewed_by,
                    reviewed_at=_utcnow(),
                )
                .returning(TimeOffRequest.id)
            )
            changed = sorted(result.scalars().all())
        except SQLAlchemyError:
            logger.exception("Bulk approval failed for time-off requests %s", ids)
            raise PersistenceException("bulk_approve")
        return changed

    @staticmethod
    async def bulk_approve(
        db: AsyncSession,
        request_ids: Sequence[int],
        reviewed_by: Optional[int] = None,
    ) -> int:
        """Approve the pending requests among *request_ids*; returns how many changed."""
        return len(await TimeOffRequestStore.approve_many(db, request_ids, reviewed_by))
