"""Time-off request store — create, listing, filtering, ordering and status updates."""

from __future__ import annotations

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from hrportal.common.constants import LeaveType, OrderBy, RequestStatus
from hrportal.common.exceptions import (
    NotFoundException,
    PersistenceException,
    ValidationException,
)
from hrportal.timeoff.models import TimeOffRequest
from hrportal.timeoff.schemas import TimeOffFilters
from hrportal.timeoff.store import TimeOffRequestStore
from tests.conftest import seed_employee, seed_holiday, seed_request


def _at(day: int, hour: int = 9) -> datetime:
    return datetime(2026, 2, day, hour, tzinfo=timezone.utc)


async def _fresh(db, request_id: int) -> TimeOffRequest:
    result = await db.execute(
        select(TimeOffRequest)
        .where(TimeOffRequest.id == request_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().one()


# ═════════════════════════════════════════════════════════════════════
# 1. Create
# ═════════════════════════════════════════════════════════════════════


class TestCreate:

    async def test_create_persists_pending(self, db, employee):
        request_id = await TimeOffRequestStore.create(
            db, employee.id, "vacation", "2026-03-09", "2026-03-11", "  Trip  ",
        )

        row = await _fresh(db, request_id)
        assert request_id > 0
        assert row.status == RequestStatus.pending
        assert row.leave_type == LeaveType.vacation
        assert (row.start_date, row.end_date) == (date(2026, 3, 9), date(2026, 3, 11))
        assert row.notes == "Trip"
        assert row.created_at is not None

    async def test_start_today_allowed(self, db, employee):
        request_id = await TimeOffRequestStore.create(
            db, employee.id, "sick", "2026-03-02", "2026-03-02",
        )
        assert request_id > 0

    @pytest.mark.parametrize(
        "leave_type, start, end, message",
        [
            ("holiday", "2026-03-09", "2026-03-10", "Please select a valid leave type."),
            ("vacation", "03/09/2026", "2026-03-10", "Please select valid start and end dates."),
            ("vacation", "2026-03-09", "", "Please select valid start and end dates."),
            ("vacation", "2026-03-10", "2026-03-09", "End date cannot be before start date."),
            ("vacation", "2026-02-27", "2026-03-03", "Cannot request time off in the past."),
        ],
    )
    async def test_validation_messages(self, db, employee, leave_type, start, end, message):
        with pytest.raises(ValidationException) as exc_info:
            await TimeOffRequestStore.create(db, employee.id, leave_type, start, end)

        assert exc_info.value.detail == message
        rows = (await db.execute(select(TimeOffRequest))).scalars().all()
        assert rows == []


# ═════════════════════════════════════════════════════════════════════
# 2. Read
# ═════════════════════════════════════════════════════════════════════


class TestRead:

    async def test_get_includes_day_counts_and_employee(self, db, employee):
        await seed_holiday(db, date(2026, 3, 11))
        req = await seed_request(
            db, employee.id, start_date=date(2026, 3, 9), end_date=date(2026, 3, 15),
        )

        out = await TimeOffRequestStore.get(db, req.id)

        assert out.employee_name == "Alice Walker"
        assert out.department == "Engineering"
        assert out.total_calendar_days == 7
        assert out.business_days == 4

    async def test_get_unknown(self, db):
        with pytest.raises(NotFoundException):
            await TimeOffRequestStore.get(db, 12345)

    async def test_list_pending_newest_first(self, db, employee):
        older = await seed_request(
            db, employee.id, start_date=date(2026, 3, 9), end_date=date(2026, 3, 9),
            created_at=_at(1),
        )
        newer = await seed_request(
            db, employee.id, start_date=date(2026, 3, 10), end_date=date(2026, 3, 10),
            created_at=_at(5),
        )
        await seed_request(
            db, employee.id, start_date=date(2026, 3, 11), end_date=date(2026, 3, 11),
            status=RequestStatus.approved, created_at=_at(6),
        )

        pending = await TimeOffRequestStore.list_pending(db)

        assert [r.id for r in pending] == [newer.id, older.id]
        assert all(r.business_days == 1 and r.total_calendar_days == 1 for r in pending)

    async def test_list_for_employee_only_own(self, db, employee):
        other = await seed_employee(db, first_name="Bob")
        mine = await seed_request(
            db, employee.id, start_date=date(2026, 3, 9), end_date=date(2026, 3, 9),
        )
        await seed_request(
            db, other.id, start_date=date(2026, 3, 9), end_date=date(2026, 3, 9),
        )

        history = await TimeOffRequestStore.list_for_employee(db, employee.id)

        assert [r.id for r in history] == [mine.id]

    async def test_list_departments_distinct_non_empty(self, db):
        await seed_employee(db, department="Sales")
        await seed_employee(db, department="Engineering")
        await seed_employee(db, department="Sales")
        await seed_employee(db, department=None)
        await seed_employee(db, department="")

        assert await TimeOffRequestStore.list_departments(db) == ["Engineering", "Sales"]


# ═════════════════════════════════════════════════════════════════════
# 3. Filtered listing
# ═════════════════════════════════════════════════════════════════════


class TestListFiltered:

    async def _seed(self, db):
        eng = await seed_employee(db, first_name="Alice", last_name="Walker", department="Engineering")
        sales = await seed_employee(db, first_name="Bob", last_name="Stone", department="Sales")
        rows = [
            await seed_request(
                db, eng.id, start_date=date(2026, 3, 9), end_date=date(2026, 3, 10),
                status=RequestStatus.approved, created_at=_at(1),
            ),
            await seed_request(
                db, eng.id, start_date=date(2026, 3, 16), end_date=date(2026, 3, 20),
                leave_type=LeaveType.sick, created_at=_at(2),
            ),
            await seed_request(
                db, sales.id, start_date=date(2026, 3, 9), end_date=date(2026, 3, 9),
                status=RequestStatus.approved, created_at=_at(3),
            ),
            await seed_request(
                db, sales.id, start_date=date(2026, 4, 1), end_date=date(2026, 4, 3),
                status=RequestStatus.rejected, created_at=_at(4),
            ),
        ]
        return eng, sales, rows

    async def test_no_filters_returns_all_newest_first(self, db):
        _, _, rows = await self._seed(db)

        records, total = await TimeOffRequestStore.list_filtered(db)

        assert total == 4
        assert [r.id for r in records] == [r.id for r in reversed(rows)]

    async def test_filters_intersect(self, db):
        _, _, rows = await self._seed(db)

        records, total = await TimeOffRequestStore.list_filtered(
            db, TimeOffFilters(status="approved", department="Engineering"),
        )

        assert total == 1
        assert [r.id for r in records] == [rows[0].id]

    async def test_leave_type_and_employee_filters(self, db):
        eng, _, rows = await self._seed(db)

        records, _ = await TimeOffRequestStore.list_filtered(
            db, TimeOffFilters(leave_type="sick", employee_id=eng.id),
        )

        assert [r.id for r in records] == [rows[1].id]

    async def test_date_range_keeps_contained_requests(self, db):
        _, _, rows = await self._seed(db)

        records, total = await TimeOffRequestStore.list_filtered(
            db, TimeOffFilters(start_date=date(2026, 3, 9), end_date=date(2026, 3, 15)),
        )

        assert total == 2
        assert {r.id for r in records} == {rows[0].id, rows[2].id}

    async def test_search_first_or_last_name_case_insensitive(self, db):
        _, _, rows = await self._seed(db)

        by_first, _ = await TimeOffRequestStore.list_filtered(db, TimeOffFilters(search="ALI"))
        by_last, _ = await TimeOffRequestStore.list_filtered(db, TimeOffFilters(search="sto"))

        assert {r.id for r in by_first} == {rows[0].id, rows[1].id}
        assert {r.id for r in by_last} == {rows[2].id, rows[3].id}

    async def test_search_wildcards_are_literal(self, db):
        await self._seed(db)

        records, total = await TimeOffRequestStore.list_filtered(db, TimeOffFilters(search="%"))

        assert (records, total) == ([], 0)

    async def test_blank_filters_mean_no_constraint(self, db):
        await self._seed(db)

        filters = TimeOffFilters.model_validate(
            {"status": "", "department": "", "search": "", "start_date": ""},
        )
        _, total = await TimeOffRequestStore.list_filtered(db, filters)

        assert total == 4

    async def test_total_counts_before_pagination(self, db):
        _, _, rows = await self._seed(db)

        page1, total1 = await TimeOffRequestStore.list_filtered(db, limit=3, offset=0)
        page2, total2 = await TimeOffRequestStore.list_filtered(db, limit=3, offset=3)

        assert total1 == total2 == 4
        assert len(page1) == 3
        assert [r.id for r in page2] == [rows[0].id]

    async def test_order_by_employee_name(self, db):
        _, _, rows = await self._seed(db)

        asc, _ = await TimeOffRequestStore.list_filtered(db, order_by="employee_name_asc")
        desc, _ = await TimeOffRequestStore.list_filtered(db, order_by="employee_name DESC")

        assert [r.employee_name for r in asc][:2] == ["Alice Walker", "Alice Walker"]
        assert [r.employee_name for r in desc][:2] == ["Bob Stone", "Bob Stone"]

    async def test_order_by_created_at_asc(self, db):
        _, _, rows = await self._seed(db)

        records, _ = await TimeOffRequestStore.list_filtered(db, order_by="created_at ASC")

        assert [r.id for r in records] == [r.id for r in rows]

    async def test_injection_in_order_by_falls_back(self, db):
        _, _, rows = await self._seed(db)

        records, total = await TimeOffRequestStore.list_filtered(
            db, order_by="created_at; DROP TABLE time_off_requests;--",
        )

        assert total == 4
        assert [r.id for r in records] == [r.id for r in reversed(rows)]
        still_there = (await db.execute(select(TimeOffRequest))).scalars().all()
        assert len(still_there) == 4


class TestResolveOrderBy:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (None, OrderBy.created_at_desc),
            ("", OrderBy.created_at_desc),
            ("created_at_asc", OrderBy.created_at_asc),
            ("created_at ASC", OrderBy.created_at_asc),
            ("  Employee_Name   desc ", OrderBy.employee_name_desc),
            ("salary DESC", OrderBy.created_at_desc),
            ("1; DROP TABLE employees", OrderBy.created_at_desc),
        ],
    )
    def test_allow_list(self, raw, expected):
        assert TimeOffRequestStore.resolve_order_by(raw) == expected


# ═════════════════════════════════════════════════════════════════════
# 4. Status transitions
# ═════════════════════════════════════════════════════════════════════


class TestSetStatus:

    async def test_pending_to_approved(self, db, employee, hr_user):
        req = await seed_request(
            db, employee.id, start_date=date(2026, 3, 9), end_date=date(2026, 3, 9),
        )

        changed = await TimeOffRequestStore.set_status(
            db, req.id, RequestStatus.approved, reviewed_by=hr_user.id,
        )

        row = await _fresh(db, req.id)
        assert changed is True
        assert row.status == RequestStatus.approved
        assert row.reviewed_by == hr_user.id
        assert row.reviewed_at is not None

    async def test_decided_request_is_not_changed(self, db, employee):
        req = await seed_request(
            db, employee.id, start_date=date(2026, 3, 9), end_date=date(2026, 3, 9),
            status=RequestStatus.approved,
        )

        changed = await TimeOffRequestStore.set_status(db, req.id, RequestStatus.rejected)

        row = await _fresh(db, req.id)
        assert changed is False
        assert row.status == RequestStatus.approved

    async def test_unknown_request_returns_false(self, db):
        assert await TimeOffRequestStore.set_status(db, 999, RequestStatus.approved) is False

    async def test_pending_is_not_a_target(self, db, employee):
        req = await seed_request(
            db, employee.id, start_date=date(2026, 3, 9), end_date=date(2026, 3, 9),
        )
        with pytest.raises(ValidationException):
            await TimeOffRequestStore.set_status(db, req.id, RequestStatus.pending)


class TestBulkApprove:

    async def test_skips_already_approved(self, db, employee):
        reqs = [
            await seed_request(
                db, employee.id, start_date=date(2026, 3, 9 + i), end_date=date(2026, 3, 9 + i),
            )
            for i in range(3)
        ]
        await TimeOffRequestStore.set_status(db, reqs[0].id, RequestStatus.approved)

        count = await TimeOffRequestStore.bulk_approve(db, [r.id for r in reqs])

        assert count == 2
        for r in reqs:
            assert (await _fresh(db, r.id)).status == RequestStatus.approved

    async def test_idempotent(self, db, employee):
        reqs = [
            await seed_request(
                db, employee.id, start_date=date(2026, 3, 9 + i), end_date=date(2026, 3, 9 + i),
            )
            for i in range(2)
        ]
        ids = [r.id for r in reqs]

        assert await TimeOffRequestStore.bulk_approve(db, ids) == 2
        assert await TimeOffRequestStore.bulk_approve(db, ids) == 0

    async def test_rejected_and_unknown_ids_untouched(self, db, employee):
        rejected = await seed_request(
            db, employee.id, start_date=date(2026, 3, 9), end_date=date(2026, 3, 9),
            status=RequestStatus.rejected,
        )

        changed = await TimeOffRequestStore.approve_many(db, [rejected.id, 777, 778])

        assert changed == []
        assert (await _fresh(db, rejected.id)).status == RequestStatus.rejected

    async def test_empty_ids(self, db):
        assert await TimeOffRequestStore.bulk_approve(db, []) == 0


# ═════════════════════════════════════════════════════════════════════
# 5. Approved calendar
# ═════════════════════════════════════════════════════════════════════


class TestApprovedCalendar:

    async def test_expands_per_day_clipped_to_month(self, db, employee):
        await seed_request(
            db, employee.id, start_date=date(2026, 2, 27), end_date=date(2026, 3, 2),
            status=RequestStatus.approved,
        )
        await seed_request(
            db, employee.id, start_date=date(2026, 3, 10), end_date=date(2026, 3, 10),
            leave_type=LeaveType.sick, status=RequestStatus.pending,
        )

        cal = await TimeOffRequestStore.approved_calendar(db, 2026, 3)

        assert list(cal.days) == ["2026-03-01", "2026-03-02"]
        entry = cal.days["2026-03-01"][0]
        assert entry.name == "Alice Walker"
        assert entry.leave_type == LeaveType.vacation

    async def test_filter_by_employee(self, db, employee):
        other = await seed_employee(db, first_name="Bob")
        await seed_request(
            db, other.id, start_date=date(2026, 3, 9), end_date=date(2026, 3, 9),
            status=RequestStatus.approved,
        )

        everyone = await TimeOffRequestStore.approved_calendar(db, 2026, 3)
        mine = await TimeOffRequestStore.approved_calendar(db, 2026, 3, employee_id=employee.id)

        assert "2026-03-09" in everyone.days
        assert mine.days == {}

    async def test_invalid_month(self, db):
        with pytest.raises(ValidationException):
            await TimeOffRequestStore.approved_calendar(db, 2026, 13)


# ═════════════════════════════════════════════════════════════════════
# Datastore failures
# ═════════════════════════════════════════════════════════════════════


GENERIC_DETAIL = "We could not save your changes. Please try again."


def _failing() -> AsyncMock:
    return AsyncMock(side_effect=SQLAlchemyError("connection reset by peer"))


async def _request_count(db) -> int:
    return (await db.execute(select(func.count(TimeOffRequest.id)))).scalar()


class TestPersistenceFailures:

    async def test_create_failure_leaves_no_row(self, db, employee):
        with patch.object(db, "flush", _failing()):
            with pytest.raises(PersistenceException) as exc_info:
                await TimeOffRequestStore.create(
                    db, employee.id, "vacation", "2026-03-09", "2026-03-10",
                )
        await db.rollback()

        assert exc_info.value.detail == GENERIC_DETAIL
        assert "connection reset" not in exc_info.value.detail
        assert await _request_count(db) == 0

    async def test_set_status_failure_keeps_request_pending(self, db, employee):
        req = await seed_request(
            db, employee.id, start_date=date(2026, 3, 9), end_date=date(2026, 3, 9),
        )
        await db.commit()

        with patch.object(db, "execute", _failing()):
            with pytest.raises(PersistenceException) as exc_info:
                await TimeOffRequestStore.set_status(db, req.id, RequestStatus.approved)
        await db.rollback()

        assert exc_info.value.operation == "set_status"
        assert exc_info.value.detail == GENERIC_DETAIL
        assert (await _fresh(db, req.id)).status == RequestStatus.pending

    async def test_bulk_approve_failure_changes_nothing(self, db, employee):
        reqs = [
            await seed_request(
                db, employee.id, start_date=date(2026, 3, 9 + i), end_date=date(2026, 3, 9 + i),
            )
            for i in range(2)
        ]
        await db.commit()

        with patch.object(db, "execute", _failing()):
            with pytest.raises(PersistenceException) as exc_info:
                await TimeOffRequestStore.approve_many(db, [r.id for r in reqs])
        await db.rollback()

        assert exc_info.value.operation == "bulk_approve"
        for r in reqs:
            assert (await _fresh(db, r.id)).status == RequestStatus.pending
