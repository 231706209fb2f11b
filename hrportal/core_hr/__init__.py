"""Core HR module — the Employee model referenced by time-off requests."""

from hrportal.core_hr.models import Employee

__all__ = ["Employee"]
