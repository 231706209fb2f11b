"""Time-off ORM models: TimeOffRequest, LeaveAllowance, CompanyHoliday."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrportal.common.constants import LeaveType, RequestStatus
from hrportal.database import Base

if TYPE_CHECKING:
    from hrportal.core_hr.models import Employee


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimeOffRequest(Base):
    __tablename__ = "time_off_requests"
    __table_args__ = (
        sa.CheckConstraint("end_date >= start_date", name="ck_time_off_date_order"),
        sa.Index("ix_time_off_employee_dates", "employee_id", "start_date", "end_date"),
        sa.Index("ix_time_off_status", "status"),
    )

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("employees.id"), nullable=False
    )
    leave_type: Mapped[LeaveType] = mapped_column(
        sa.Enum(LeaveType, name="leave_type"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    status: Mapped[RequestStatus] = mapped_column(
        sa.Enum(RequestStatus, name="request_status"),
        nullable=False,
        default=RequestStatus.pending,
    )
    reviewed_by: Mapped[Optional[int]] = mapped_column(
        sa.Integer, sa.ForeignKey("employees.id")
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_utcnow
    )

    # Relationships
    employee: Mapped[Employee] = relationship(
        back_populates="time_off_requests", foreign_keys=[employee_id]
    )
    reviewer: Mapped[Optional[Employee]] = relationship(foreign_keys=[reviewed_by])

    def __repr__(self) -> str:
        return (
            f"<TimeOffRequest {self.id} {self.leave_type} "
            f"{self.start_date}..{self.end_date} {self.status}>"
        )


class LeaveAllowance(Base):
    __tablename__ = "leave_allowances"
    __table_args__ = (
        sa.UniqueConstraint(
            "employee_id", "leave_type", "year", name="uq_leave_allowance"
        ),
    )

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("employees.id"), nullable=False
    )
    leave_type: Mapped[LeaveType] = mapped_column(
        sa.Enum(LeaveType, name="leave_type"), nullable=False
    )
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    days_allowed: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="leave_allowances")


class CompanyHoliday(Base):
    __tablename__ = "company_holidays"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    holiday_date: Mapped[date] = mapped_column(sa.Date, unique=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(sa.String(200))

    def __repr__(self) -> str:
        return f"<CompanyHoliday {self.holiday_date} {self.name!r}>"
