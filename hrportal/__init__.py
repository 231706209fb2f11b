"""HR portal time-off service."""

__version__ = "1.0.0"
