"""Core HR ORM models: Employee.

SQLAlchemy 2.0 async-compatible models with Mapped[] annotations.
Column names match the schema defined in 001_initial_schema.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrportal.common.constants import UserRole
from hrportal.database import Base

if TYPE_CHECKING:
    from hrportal.auth.models import UserSession
    from hrportal.timeoff.models import LeaveAllowance, TimeOffRequest


class Employee(Base):
    """A portal user. Created at onboarding; referenced by time-off rows."""

    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    email: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    department: Mapped[Optional[str]] = mapped_column(sa.String(100))
    position: Mapped[Optional[str]] = mapped_column(sa.String(100))
    hire_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    role: Mapped[UserRole] = mapped_column(
        sa.Enum(UserRole, name="user_role"),
        nullable=False,
        default=UserRole.employee,
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    sessions: Mapped[list[UserSession]] = relationship(back_populates="employee")
    time_off_requests: Mapped[list[TimeOffRequest]] = relationship(
        back_populates="employee", foreign_keys="TimeOffRequest.employee_id"
    )
    leave_allowances: Mapped[list[LeaveAllowance]] = relationship(
        back_populates="employee"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Employee {self.id} {self.first_name} {self.last_name}>"
