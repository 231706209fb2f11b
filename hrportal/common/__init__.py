"""Common module — shared utilities for the HR portal."""

from hrportal.common.audit import AuditTrail, create_audit_entry
from hrportal.common.constants import (
    DEFAULT_ALLOWANCES,
    DEFAULT_ORDER_BY,
    PRIVILEGED_ROLES,
    LeaveType,
    OrderBy,
    RequestStatus,
    UserRole,
)
from hrportal.common.exceptions import (
    AppException,
    ForbiddenException,
    InsufficientBalanceException,
    InvalidRangeException,
    NotFoundException,
    PersistenceException,
    ValidationException,
    register_exception_handlers,
)
from hrportal.common.filters import apply_search
from hrportal.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    build_meta,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Constants / Enums
    "LeaveType",
    "OrderBy",
    "RequestStatus",
    "UserRole",
    "DEFAULT_ALLOWANCES",
    "DEFAULT_ORDER_BY",
    "PRIVILEGED_ROLES",
    # Exceptions
    "AppException",
    "ForbiddenException",
    "InsufficientBalanceException",
    "InvalidRangeException",
    "NotFoundException",
    "PersistenceException",
    "ValidationException",
    "register_exception_handlers",
    # Filters
    "apply_search",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "build_meta",
]
