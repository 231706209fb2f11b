"""Auth module — sessions, CSRF binding and the per-request AuthContext."""
