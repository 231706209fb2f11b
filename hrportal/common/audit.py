"""Audit trail: one append-only row per request decision or allowance change."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from hrportal.database import Base


class AuditTrail(Base):
    __tablename__ = "audit_trail"
    __table_args__ = (
        sa.Index("ix_audit_trail_actor_id", "actor_id"),
        sa.Index("ix_audit_trail_entity", "entity_type", "entity_id"),
        sa.Index("ix_audit_trail_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    # NULL for system-initiated changes
    actor_id: Mapped[Optional[int]] = mapped_column(sa.Integer, sa.ForeignKey("employees.id"))
    action: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    entity_type: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    entity_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    old_values: Mapped[Optional[dict]] = mapped_column(sa.JSON)
    new_values: Mapped[Optional[dict]] = mapped_column(sa.JSON)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<AuditTrail #{self.id} {self.action} {self.entity_type}:{self.entity_id}>"


async def create_audit_entry(
    session: AsyncSession,
    *,
    action: str,
    entity_type: str,
    entity_id: int,
    actor_id: Optional[int] = None,
    old_values: Optional[dict[str, Any]] = None,
    new_values: Optional[dict[str, Any]] = None,
) -> AuditTrail:
    """Add an audit row inside the caller's transaction and flush it.

    ``action`` is one of approve, reject, bulk_approve or set_allowance;
    ``entity_type`` is ``time_off_request`` or ``leave_allowance``.
    """
    entry = AuditTrail(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor_id,
        old_values=old_values,
        new_values=new_values,
    )
    session.add(entry)
    await session.flush()
    return entry
