"""Time-off workflow — submission, review and the portal's form actions.

State machine::

    pending --approve--> approved
    pending --reject-->  rejected

Both end states are terminal. Every mutating flow checks the caller's CSRF
token against the one bound to their session before touching the database;
review flows additionally require the ``hr`` or ``admin`` role, checked first.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.schemas import AuthContext
from hrportal.auth.service import verify_csrf
from hrportal.common.audit import create_audit_entry
from hrportal.common.constants import FORM_ACTIONS, RequestStatus
from hrportal.common.exceptions import (
    AppException,
    ForbiddenException,
    InsufficientBalanceException,
    ValidationException,
)
from hrportal.timeoff import days
from hrportal.timeoff.balance import LeaveBalanceCalculator
from hrportal.timeoff.schemas import ActionResult, TimeOffSubmit
from hrportal.timeoff.store import TimeOffRequestStore

logger = logging.getLogger(__name__)


def _positive_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        value = None
    try:
        parsed = int(str(value).strip()) if isinstance(value, str) else int(value)
    except (TypeError, ValueError):
        parsed = 0
    if parsed <= 0:
        raise ValidationException({field: ["Invalid request ID."]})
    return parsed


def _submission_from_form(form: Mapping[str, Any]) -> TimeOffSubmit:
    try:
        return TimeOffSubmit(
            leave_type=form.get("leave_type") or "",
            start_date=form.get("start_date") or "",
            end_date=form.get("end_date") or "",
            notes=form.get("notes") or None,
        )
    except PydanticValidationError as exc:
        field = str(exc.errors()[0]["loc"][0]) if exc.errors() else "form"
        raise ValidationException({field: [f"Invalid value for {field}."]})


class TimeOffWorkflow:
    """Orchestrates validation, balance checks and status transitions."""

    # ─────────────────────────────────────────────────────────────────
    # Guards
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _require_reviewer(ctx: AuthContext) -> None:
        if not ctx.is_privileged:
            logger.warning(
                "Employee %s (role %s) attempted to review time-off requests",
                ctx.user_id,
                ctx.role.value,
            )
            raise ForbiddenException("Unauthorized")

    # ─────────────────────────────────────────────────────────────────
    # Submit
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def submit_request(
        db: AsyncSession,
        ctx: AuthContext,
        data: TimeOffSubmit,
        csrf_token: Optional[str],
    ) -> ActionResult:
        """Validate and persist a new request for the caller.

        The requested amount is the number of business days in the range;
        it must not exceed the remaining balance for the leave type.
        """
        verify_csrf(ctx, csrf_token)

        leave_type, start, end = TimeOffRequestStore.validate_submission(
            data.leave_type, data.start_date, data.end_date,
        )

        holidays = await days.get_holiday_dates(db, start, end)
        requested = days.count_business_days(start, end, holidays)
        if requested == 0:
            raise ValidationException(
                {"start_date": ["The selected dates contain no working days."]}
            )

        balance = await LeaveBalanceCalculator.get_balance(db, ctx.user_id, start.year)
        remaining = balance.balances[leave_type].remaining
        if remaining < requested:
            logger.info(
                "Rejected %s request from employee %s: %s day(s) requested, %s remaining",
                leave_type.value,
                ctx.user_id,
                requested,
                remaining,
            )
            raise InsufficientBalanceException(leave_type.value, requested, remaining)

        request_id = await TimeOffRequestStore.create(
            db, ctx.user_id, leave_type, start, end, data.notes,
        )
        return ActionResult(
            success=True,
            message="Time off request submitted successfully!",
            request=await TimeOffRequestStore.get(db, request_id),
        )

    # ─────────────────────────────────────────────────────────────────
    # Approve / Reject
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _review(
        db: AsyncSession,
        ctx: AuthContext,
        request_id: Any,
        csrf_token: Optional[str],
        status: RequestStatus,
    ) -> ActionResult:
        TimeOffWorkflow._require_reviewer(ctx)
        verify_csrf(ctx, csrf_token)
        request_id = _positive_int(request_id, "request_id")

        current = await TimeOffRequestStore.get(db, request_id)
        if current.status != RequestStatus.pending:
            raise ValidationException(
                {"status": [f"Request is already {current.status.value}."]}
            )

        changed = await TimeOffRequestStore.set_status(
            db, request_id, status, reviewed_by=ctx.user_id,
        )
        if not changed:
            # Another reviewer decided it between our read and the update
            raise ValidationException(
                {"status": ["Request has already been reviewed."]}
            )

        await create_audit_entry(
            db,
            action="approve" if status == RequestStatus.approved else "reject",
            entity_type="time_off_request",
            entity_id=request_id,
            actor_id=ctx.user_id,
            old_values={"status": RequestStatus.pending.value},
            new_values={"status": status.value},
        )
        logger.info(
            "Time-off request %s %s by %s", request_id, status.value, ctx.user_id,
        )
        return ActionResult(
            success=True,
            message=f"Request {status.value} successfully.",
            request=await TimeOffRequestStore.get(db, request_id),
        )

    @staticmethod
    async def approve(
        db: AsyncSession,
        ctx: AuthContext,
        request_id: Any,
        csrf_token: Optional[str],
    ) -> ActionResult:
        return await TimeOffWorkflow._review(
            db, ctx, request_id, csrf_token, RequestStatus.approved,
        )

    @staticmethod
    async def reject(
        db: AsyncSession,
        ctx: AuthContext,
        request_id: Any,
        csrf_token: Optional[str],
    ) -> ActionResult:
        return await TimeOffWorkflow._review(
            db, ctx, request_id, csrf_token, RequestStatus.rejected,
        )

    # ─────────────────────────────────────────────────────────────────
    # Bulk approve
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def bulk_approve(
        db: AsyncSession,
        ctx: AuthContext,
        request_ids: Optional[Iterable[Any]],
        csrf_token: Optional[str],
    ) -> ActionResult:
        """Approve every pending request among *request_ids*.

        Requests already decided are skipped; the result reports how many
        actually changed.
        """
        TimeOffWorkflow._require_reviewer(ctx)
        verify_csrf(ctx, csrf_token)

        if isinstance(request_ids, str):
            request_ids = [v for v in request_ids.split(",") if v.strip()]
        ids = [_positive_int(v, "request_ids") for v in (request_ids or [])]
        if not ids:
            raise ValidationException({"request_ids": ["No requests selected."]})

        changed = await TimeOffRequestStore.approve_many(db, ids, reviewed_by=ctx.user_id)
        for request_id in changed:
            await create_audit_entry(
                db,
                action="bulk_approve",
                entity_type="time_off_request",
                entity_id=request_id,
                actor_id=ctx.user_id,
                old_values={"status": RequestStatus.pending.value},
                new_values={"status": RequestStatus.approved.value},
            )

        logger.info(
            "Bulk approval by %s: %s of %s request(s) approved",
            ctx.user_id,
            len(changed),
            len(set(ids)),
        )
        return ActionResult(
            success=True,
            message=f"{len(changed)} request(s) approved.",
            count_updated=len(changed),
        )

    # ─────────────────────────────────────────────────────────────────
    # Form dispatcher
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def handle_form_action(
        db: AsyncSession,
        ctx: AuthContext,
        form: Mapping[str, Any],
    ) -> ActionResult:
        """Run the flow named by the form's ``action`` field.

        Application errors come back as ``{success: false, message}`` and
        roll back anything the failed flow wrote.
        """
        action = (form.get("action") or "").strip()
        csrf_token = form.get("csrf_token")

        if action not in FORM_ACTIONS:
            return ActionResult(success=False, message="Invalid action.")

        try:
            if action == "submit":
                data = _submission_from_form(form)
                return await TimeOffWorkflow.submit_request(db, ctx, data, csrf_token)
            if action == "approve":
                return await TimeOffWorkflow.approve(
                    db, ctx, form.get("request_id"), csrf_token,
                )
            if action == "reject":
                return await TimeOffWorkflow.reject(
                    db, ctx, form.get("request_id"), csrf_token,
                )
            return await TimeOffWorkflow.bulk_approve(
                db, ctx, form.get("request_ids"), csrf_token,
            )
        except AppException as exc:
            await db.rollback()
            logger.info("Form action %r by %s failed: %s", action, ctx.user_id, exc.detail)
            return ActionResult(success=False, message=exc.detail)
