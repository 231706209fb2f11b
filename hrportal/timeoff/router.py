"""Time-off router — submit, review, balances, calendar, holidays, form actions.

All endpoints require authentication. Review endpoints are gated on the
``hr`` / ``admin`` roles; approve, reject and bulk approve enforce that gate
inside the workflow so the JSON and form paths behave the same. Mutating
JSON endpoints read the session CSRF token from ``X-CSRF-Token``.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.dependencies import get_auth_context, require_role
from hrportal.auth.schemas import AuthContext
from hrportal.auth.service import verify_csrf
from hrportal.common.constants import LeaveType, RequestStatus, UserRole
from hrportal.common.pagination import PaginationParams, build_meta
from hrportal.common.rate_limit import limiter
from hrportal.database import get_db
from hrportal.timeoff import days
from hrportal.timeoff.balance import LeaveBalanceCalculator
from hrportal.timeoff.schemas import (
    ActionResult,
    AllowanceOut,
    AllowanceUpsert,
    BulkApproveRequest,
    HolidayOut,
    LeaveBalanceOut,
    LeaveCalendarOut,
    TimeOffFilters,
    TimeOffPage,
    TimeOffRequestOut,
    TimeOffSubmit,
)
from hrportal.timeoff.store import TimeOffRequestStore
from hrportal.timeoff.workflow import TimeOffWorkflow

router = APIRouter(prefix="", tags=["timeoff"])

_reviewer = require_role(UserRole.hr, UserRole.admin)


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", response_model=ActionResult, status_code=201)
@limiter.limit("20/minute")
async def submit_request(
    request: Request,
    body: TimeOffSubmit,
    x_csrf_token: Optional[str] = Header(None),
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Submit a time-off request. Checks dates and the remaining balance."""
    return await TimeOffWorkflow.submit_request(db, ctx, body, x_csrf_token)


# ── GET /requests/mine ──────────────────────────────────────────────

@router.get("/requests/mine", response_model=list[TimeOffRequestOut])
async def my_requests(
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """The caller's own request history, newest first."""
    return await TimeOffRequestStore.list_for_employee(db, ctx.user_id)


# ── GET /requests/pending ───────────────────────────────────────────

@router.get("/requests/pending", response_model=list[TimeOffRequestOut])
async def pending_requests(
    ctx: AuthContext = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    """All pending requests awaiting review."""
    return await TimeOffRequestStore.list_pending(db)


# ── GET /requests ───────────────────────────────────────────────────

@router.get("/requests", response_model=TimeOffPage)
async def list_requests(
    status: Optional[RequestStatus] = Query(None),
    department: Optional[str] = Query(None, max_length=100),
    leave_type: Optional[LeaveType] = Query(None),
    employee_id: Optional[int] = Query(None, gt=0),
    search: Optional[str] = Query(None, max_length=100),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    order_by: Optional[str] = Query(None),
    pagination: PaginationParams = Depends(),
    ctx: AuthContext = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    """Filtered, paginated request list for HR reporting."""
    filters = TimeOffFilters(
        status=status,
        department=department,
        leave_type=leave_type,
        employee_id=employee_id,
        search=search,
        start_date=start_date,
        end_date=end_date,
    )
    records, total = await TimeOffRequestStore.list_filtered(
        db,
        filters,
        order_by,
        limit=pagination.page_size,
        offset=pagination.offset,
    )
    return TimeOffPage(
        data=records,
        meta=build_meta(pagination.page, pagination.page_size, total),
        order_by=TimeOffRequestStore.resolve_order_by(order_by).value,
    )


# ── POST /requests/bulk-approve ─────────────────────────────────────

@router.post("/requests/bulk-approve", response_model=ActionResult)
async def bulk_approve(
    body: BulkApproveRequest,
    x_csrf_token: Optional[str] = Header(None),
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Approve every pending request among the given ids."""
    return await TimeOffWorkflow.bulk_approve(db, ctx, body.request_ids, x_csrf_token)


# ── POST /requests/{id}/approve ─────────────────────────────────────

@router.post("/requests/{request_id}/approve", response_model=ActionResult)
async def approve_request(
    request_id: int,
    x_csrf_token: Optional[str] = Header(None),
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await TimeOffWorkflow.approve(db, ctx, request_id, x_csrf_token)


# ── POST /requests/{id}/reject ──────────────────────────────────────

@router.post("/requests/{request_id}/reject", response_model=ActionResult)
async def reject_request(
    request_id: int,
    x_csrf_token: Optional[str] = Header(None),
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await TimeOffWorkflow.reject(db, ctx, request_id, x_csrf_token)


# ── POST /actions ───────────────────────────────────────────────────

@router.post("/actions", response_model=ActionResult)
@limiter.limit("30/minute")
async def form_action(
    request: Request,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Portal form POST: ``action`` is one of submit, approve, reject, bulk_approve.

    Always answers 200 with ``{success, message}``.
    """
    form = await request.form()
    fields = {key: form.get(key) for key in form.keys()}
    # Portal checkboxes post as request_ids[]
    fields["request_ids"] = form.getlist("request_ids") or form.getlist("request_ids[]")
    fields.pop("request_ids[]", None)
    return await TimeOffWorkflow.handle_form_action(db, ctx, fields)


# ── GET /balance ────────────────────────────────────────────────────

@router.get("/balance", response_model=LeaveBalanceOut)
async def my_balance(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """The caller's balance for every leave type (default: current year)."""
    return await LeaveBalanceCalculator.get_balance(db, ctx.user_id, year)


# ── GET /balance/{employee_id} ──────────────────────────────────────

@router.get("/balance/{employee_id}", response_model=LeaveBalanceOut)
async def employee_balance(
    employee_id: int,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    ctx: AuthContext = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveBalanceCalculator.get_balance(db, employee_id, year)


# ── PUT /allowances ─────────────────────────────────────────────────

@router.put("/allowances", response_model=AllowanceOut)
async def upsert_allowance(
    body: AllowanceUpsert,
    x_csrf_token: Optional[str] = Header(None),
    ctx: AuthContext = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    """Override an employee's allowance for one leave type and year."""
    verify_csrf(ctx, x_csrf_token)
    return await LeaveBalanceCalculator.set_allowance(
        db, ctx, body.employee_id, body.leave_type, body.year, body.days_allowed,
    )


# ── GET /calendar ───────────────────────────────────────────────────

@router.get("/calendar", response_model=LeaveCalendarOut)
async def leave_calendar(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Approved leave per day for a month. Employees only see their own."""
    today = days.today()
    return await TimeOffRequestStore.approved_calendar(
        db,
        year or today.year,
        month or today.month,
        employee_id=None if ctx.is_privileged else ctx.user_id,
    )


# ── GET /holidays ───────────────────────────────────────────────────

@router.get("/holidays", response_model=list[HolidayOut])
async def holidays(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await days.list_holidays(db, year or days.today().year)


# ── GET /departments ────────────────────────────────────────────────

@router.get("/departments", response_model=list[str])
async def departments(
    ctx: AuthContext = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    """Distinct departments for the request-list filter."""
    return await TimeOffRequestStore.list_departments(db)
