"""Time-off module — business days, balances, requests and their review."""
