"""Time-off Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Submit / *Request  → request bodies (write)
  - *Out / *Result      → response bodies (read)
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrportal.common.constants import LeaveType, RequestStatus
from hrportal.common.pagination import PaginatedResponse


# ═════════════════════════════════════════════════════════════════════
# Requests — write
# ═════════════════════════════════════════════════════════════════════


class TimeOffSubmit(BaseModel):
    """Payload an employee submits for a new time-off request.

    Dates are kept as strings so that malformed values reach the workflow
    and come back as a field-level validation message.
    """

    leave_type: str = Field(..., description="vacation | sick | personal | bereavement | other")
    start_date: str = Field(..., description="First day off, YYYY-MM-DD (inclusive)")
    end_date: str = Field(..., description="Last day off, YYYY-MM-DD (inclusive)")
    notes: Optional[str] = Field(None, max_length=2000)


class BulkApproveRequest(BaseModel):
    """Ids of pending requests to approve in one action."""

    request_ids: list[int] = Field(..., min_length=1)


class AllowanceUpsert(BaseModel):
    """HR override of a leave allowance for one employee, type and year."""

    employee_id: int = Field(..., gt=0)
    leave_type: LeaveType
    year: int = Field(..., ge=2000, le=2100)
    days_allowed: int = Field(..., ge=0, le=365)


# ═════════════════════════════════════════════════════════════════════
# Requests — read
# ═════════════════════════════════════════════════════════════════════


class TimeOffRequestOut(BaseModel):
    """A request row augmented with its day counts and employee details."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    employee_name: Optional[str] = None
    department: Optional[str] = None
    leave_type: LeaveType
    start_date: date
    end_date: date
    notes: Optional[str] = None
    status: RequestStatus
    created_at: datetime
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None

    # Computed by the store
    business_days: int = 0
    total_calendar_days: int = 0


class TimeOffFilters(BaseModel):
    """Recognised filter keys for the HR request list; absent means no constraint."""

    status: Optional[RequestStatus] = None
    department: Optional[str] = None
    leave_type: Optional[LeaveType] = None
    employee_id: Optional[int] = Field(None, gt=0)
    start_date: Optional[date] = Field(None, description="Requests starting on or after")
    end_date: Optional[date] = Field(None, description="Requests ending on or before")
    search: Optional[str] = Field(None, max_length=100)

    @model_validator(mode="before")
    @classmethod
    def blank_to_none(cls, data):
        # Form/query strings arrive as "" for unset dropdowns
        if isinstance(data, dict):
            return {k: (None if v == "" else v) for k, v in data.items()}
        return data


class TimeOffPage(PaginatedResponse[TimeOffRequestOut]):
    """Paginated request list with the active order."""

    order_by: str


# ═════════════════════════════════════════════════════════════════════
# Balance
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceItem(BaseModel):
    total: int
    used: int
    remaining: int


class LeaveBalanceOut(BaseModel):
    """Balance for every leave type of one employee in one year."""

    employee_id: int
    year: int
    balances: dict[LeaveType, LeaveBalanceItem]


class AllowanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    leave_type: LeaveType
    year: int
    days_allowed: int


# ═════════════════════════════════════════════════════════════════════
# Calendar / holidays
# ═════════════════════════════════════════════════════════════════════


class CalendarEntry(BaseModel):
    employee_id: int
    name: str
    leave_type: LeaveType


class LeaveCalendarOut(BaseModel):
    """Approved leave for a month, keyed by ISO date."""

    year: int
    month: int
    days: dict[str, list[CalendarEntry]]


class HolidayOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    holiday_date: date
    name: Optional[str] = None


# ═════════════════════════════════════════════════════════════════════
# Action results
# ═════════════════════════════════════════════════════════════════════


class ActionResult(BaseModel):
    """``{success, message}`` body returned to the portal pages."""

    success: bool
    message: str
    request: Optional[TimeOffRequestOut] = None
    count_updated: Optional[int] = None
