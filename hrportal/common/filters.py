"""Query helpers for case-insensitive search."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from sqlalchemy import Select, or_


def apply_search(
    query: Select,
    columns: Sequence[Any],
    search: Optional[str],
) -> Select:
    """
    Restrict *query* to rows where any of *columns* contains *search*.

    Matching is case-insensitive ILIKE; the term is always bound as a
    parameter. Blank terms leave the query untouched.
    """
    if not search or not search.strip():
        return query

    pattern = f"%{_escape_like(search.strip())}%"
    return query.where(or_(*(col.ilike(pattern, escape="\\") for col in columns)))


def _escape_like(term: str) -> str:
    """Escape LIKE wildcards so user input only ever matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
