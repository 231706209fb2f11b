"""Enums and constants for the HR portal — matching database ENUM types."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    hr = "hr"
    admin = "admin"


# Roles allowed to review other employees' time-off requests
PRIVILEGED_ROLES: frozenset[UserRole] = frozenset({UserRole.hr, UserRole.admin})


# ── Time off ────────────────────────────────────────────────────────

class LeaveType(str, enum.Enum):
    vacation = "vacation"
    sick = "sick"
    personal = "personal"
    bereavement = "bereavement"
    other = "other"


class RequestStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class OrderBy(str, enum.Enum):
    created_at_desc = "created_at_desc"
    created_at_asc = "created_at_asc"
    employee_name_asc = "employee_name_asc"
    employee_name_desc = "employee_name_desc"


DEFAULT_ORDER_BY = OrderBy.created_at_desc

# Days per year when no leave_allowances row overrides them
DEFAULT_ALLOWANCES: dict[LeaveType, int] = {
    LeaveType.vacation: 15,
    LeaveType.sick: 10,
    LeaveType.personal: 5,
    LeaveType.bereavement: 3,
    LeaveType.other: 2,
}

# Form POST ``action`` values understood by the portal pages
FORM_ACTIONS = ("submit", "approve", "reject", "bulk_approve")


# ── Misc constants ──────────────────────────────────────────────────

UNASSIGNED_DEPARTMENT = "Unassigned"
TREND_MONTHS = 12
