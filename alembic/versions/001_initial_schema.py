"""001 – Initial schema: employees, sessions, time off, holidays, audit.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000+00:00
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("user_role", ["employee", "hr", "admin"]),
    ("leave_type", ["vacation", "sick", "personal", "bereavement", "other"]),
    ("request_status", ["pending", "approved", "rejected"]),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id          SERIAL PRIMARY KEY,
            first_name  VARCHAR(100) NOT NULL,
            last_name   VARCHAR(100) NOT NULL,
            email       VARCHAR(255) NOT NULL UNIQUE,
            department  VARCHAR(100),
            position    VARCHAR(100),
            hire_date   DATE,
            role        user_role NOT NULL DEFAULT 'employee',
            is_active   BOOLEAN NOT NULL DEFAULT TRUE,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_employees_department ON employees(department)")

    # ── 2. user_sessions ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE user_sessions (
            id           SERIAL PRIMARY KEY,
            employee_id  INTEGER NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            token_hash   VARCHAR(128) NOT NULL UNIQUE,
            csrf_token   VARCHAR(128) NOT NULL,
            expires_at   TIMESTAMPTZ NOT NULL,
            is_revoked   BOOLEAN NOT NULL DEFAULT FALSE,
            created_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_sessions_employee ON user_sessions(employee_id)")

    # ── 3. time_off_requests ──────────────────────────────────────────────
    op.execute("""
        CREATE TABLE time_off_requests (
            id           SERIAL PRIMARY KEY,
            employee_id  INTEGER NOT NULL REFERENCES employees(id),
            leave_type   leave_type NOT NULL,
            start_date   DATE NOT NULL,
            end_date     DATE NOT NULL,
            notes        TEXT,
            status       request_status NOT NULL DEFAULT 'pending',
            reviewed_by  INTEGER REFERENCES employees(id),
            reviewed_at  TIMESTAMPTZ,
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_time_off_date_order CHECK (end_date >= start_date)
        )
    """)
    op.execute(
        "CREATE INDEX ix_time_off_employee_dates "
        "ON time_off_requests(employee_id, start_date, end_date)"
    )
    op.execute("CREATE INDEX ix_time_off_status ON time_off_requests(status)")
    op.execute("CREATE INDEX idx_time_off_created ON time_off_requests(created_at)")

    # ── 4. leave_allowances ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_allowances (
            id            SERIAL PRIMARY KEY,
            employee_id   INTEGER NOT NULL REFERENCES employees(id),
            leave_type    leave_type NOT NULL,
            year          INTEGER NOT NULL,
            days_allowed  INTEGER NOT NULL CHECK (days_allowed >= 0),
            updated_at    TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_allowance UNIQUE (employee_id, leave_type, year)
        )
    """)

    # ── 5. company_holidays ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE company_holidays (
            id            SERIAL PRIMARY KEY,
            holiday_date  DATE NOT NULL UNIQUE,
            name          VARCHAR(200)
        )
    """)

    # ── 6. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id           SERIAL PRIMARY KEY,
            actor_id     INTEGER REFERENCES employees(id),
            action       VARCHAR(50) NOT NULL,
            entity_type  VARCHAR(50) NOT NULL,
            entity_id    INTEGER NOT NULL,
            old_values   JSON,
            new_values   JSON,
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id   ON audit_trail(actor_id)")
    op.execute("CREATE INDEX ix_audit_trail_entity     ON audit_trail(entity_type, entity_id)")
    op.execute("CREATE INDEX ix_audit_trail_created_at ON audit_trail(created_at)")

    # ══════════════════════════════════════════════════════════════════════
    # SEED DATA
    # ══════════════════════════════════════════════════════════════════════

    op.execute("""
        INSERT INTO company_holidays (holiday_date, name) VALUES
        ('2026-01-01', 'New Year''s Day'),
        ('2026-05-25', 'Memorial Day'),
        ('2026-07-03', 'Independence Day (observed)'),
        ('2026-09-07', 'Labor Day'),
        ('2026-11-26', 'Thanksgiving Day'),
        ('2026-12-25', 'Christmas Day')
    """)


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "audit_trail",
        "company_holidays",
        "leave_allowances",
        "time_off_requests",
        "user_sessions",
        "employees",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    # Drop enum types
    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)
