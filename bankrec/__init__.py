"""Bank statement reconciliation backend."""
