"""Leave balance engine — allowance lookup, approved usage, remaining days."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.schemas import AuthContext
from hrportal.common.audit import create_audit_entry
from hrportal.common.constants import DEFAULT_ALLOWANCES, LeaveType, RequestStatus
from hrportal.common.exceptions import (
    NotFoundException,
    PersistenceException,
    ValidationException,
)
from hrportal.core_hr.models import Employee
from hrportal.timeoff import days
from hrportal.timeoff.models import LeaveAllowance, TimeOffRequest
from hrportal.timeoff.schemas import AllowanceOut, LeaveBalanceItem, LeaveBalanceOut

logger = logging.getLogger(__name__)


def validate_employee_id(employee_id: object) -> int:
    """Return *employee_id* as an int, or raise if it is not a positive integer."""
    if isinstance(employee_id, bool):
        employee_id = None
    try:
        value = int(employee_id)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        value = 0
    if value <= 0 or (isinstance(employee_id, float) and not employee_id.is_integer()):
        raise ValidationException({"employee_id": ["Invalid employee ID."]})
    return value


class LeaveBalanceCalculator:
    """Per-employee, per-leave-type allowance, usage and remaining days."""

    @staticmethod
    async def _get_allowances(
        db: AsyncSession,
        employee_id: int,
        year: int,
    ) -> dict[LeaveType, int]:
        """Defaults merged with any HR overrides for the year."""
        result = await db.execute(
            select(LeaveAllowance.leave_type, LeaveAllowance.days_allowed).where(
                LeaveAllowance.employee_id == employee_id,
                LeaveAllowance.year == year,
            )
        )
        allowances = dict(DEFAULT_ALLOWANCES)
        for leave_type, days_allowed in result.all():
            allowances[LeaveType(leave_type)] = days_allowed
        return allowances

    @staticmethod
    async def _get_used_days(
        db: AsyncSession,
        employee_id: int,
        year: int,
    ) -> dict[LeaveType, int]:
        """Calendar days of approved requests touching *year*.

        A request counts toward the year when it starts or ends in it, so a
        request spanning New Year counts in full toward both years.
        """
        year_start, year_end = date(year, 1, 1), date(year, 12, 31)
        result = await db.execute(
            select(
                TimeOffRequest.leave_type,
                TimeOffRequest.start_date,
                TimeOffRequest.end_date,
            ).where(
                TimeOffRequest.employee_id == employee_id,
                TimeOffRequest.status == RequestStatus.approved,
                or_(
                    and_(
                        TimeOffRequest.start_date >= year_start,
                        TimeOffRequest.start_date <= year_end,
                    ),
                    and_(
                        TimeOffRequest.end_date >= year_start,
                        TimeOffRequest.end_date <= year_end,
                    ),
                ),
            )
        )
        used = {lt: 0 for lt in LeaveType}
        for leave_type, start_date, end_date in result.all():
            used[LeaveType(leave_type)] += days.count_calendar_days(start_date, end_date)
        return used

    @staticmethod
    async def get_balance(
        db: AsyncSession,
        employee_id: int,
        year: Optional[int] = None,
    ) -> LeaveBalanceOut:
        """Balance of every leave type for an employee in *year* (default: this year).

        ``remaining`` is clamped at zero. Datastore failures are logged and
        raised as ``PersistenceException``.
        """
        employee_id = validate_employee_id(employee_id)
        target_year = year or days.today().year

        try:
            emp_check = await db.execute(
                select(Employee.id).where(Employee.id == employee_id)
            )
            if emp_check.scalar() is None:
                raise NotFoundException("Employee", employee_id)

            allowances = await LeaveBalanceCalculator._get_allowances(
                db, employee_id, target_year,
            )
            used = await LeaveBalanceCalculator._get_used_days(
                db, employee_id, target_year,
            )
        except SQLAlchemyError:
            logger.exception(
                "Balance lookup failed for employee %s, year %s",
                employee_id,
                target_year,
            )
            raise PersistenceException("get_balance")

        balances = {
            lt: LeaveBalanceItem(
                total=allowances[lt],
                used=used[lt],
                remaining=max(0, allowances[lt] - used[lt]),
            )
            for lt in LeaveType
        }
        return LeaveBalanceOut(employee_id=employee_id, year=target_year, balances=balances)

    @staticmethod
    async def set_allowance(
        db: AsyncSession,
        actor: AuthContext,
        employee_id: int,
        leave_type: LeaveType,
        year: int,
        days_allowed: int,
    ) -> AllowanceOut:
        """Create or replace the allowance override for (employee, type, year)."""
        employee_id = validate_employee_id(employee_id)
        if days_allowed < 0:
            raise ValidationException({"days_allowed": ["Allowance cannot be negative."]})

        emp_check = await db.execute(select(Employee.id).where(Employee.id == employee_id))
        if emp_check.scalar() is None:
            raise NotFoundException("Employee", employee_id)

        result = await db.execute(
            select(LeaveAllowance).where(
                LeaveAllowance.employee_id == employee_id,
                LeaveAllowance.leave_type == leave_type,
                LeaveAllowance.year == year,
            )
        )
        allowance = result.scalars().first()
        old_days = allowance.days_allowed if allowance else DEFAULT_ALLOWANCES[leave_type]

        try:
            if allowance is None:
                allowance = LeaveAllowance(
                    employee_id=employee_id,
                    leave_type=leave_type,
                    year=year,
                    days_allowed=days_allowed,
                )
                db.add(allowance)
            else:
                allowance.days_allowed = days_allowed
            await db.flush()

            await create_audit_entry(
                db,
                action="set_allowance",
                entity_type="leave_allowance",
                entity_id=allowance.id,
                actor_id=actor.user_id,
                old_values={"days_allowed": old_days},
                new_values={
                    "leave_type": leave_type.value,
                    "year": year,
                    "days_allowed": days_allowed,
                },
            )
        except SQLAlchemyError:
            logger.exception(
                "Allowance update failed for employee %s (%s, %s)",
                employee_id,
                leave_type.value,
                year,
            )
            raise PersistenceException("set_allowance")

        logger.info(
            "Allowance for employee %s set to %s %s day(s) in %s by %s",
            employee_id,
            days_allowed,
            leave_type.value,
            year,
            actor.user_id,
        )
        return AllowanceOut.model_validate(allowance)
