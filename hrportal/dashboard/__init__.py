"""Dashboard module — read-only time-off reporting for HR."""
