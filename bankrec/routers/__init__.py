"""API routers package."""

from bankrec.routers import accounts, bank_accounts, import_jobs, journal, reconciliations, statements

__all__ = [
    "accounts",
    "bank_accounts",
    "import_jobs",
    "journal",
    "reconciliations",
    "statements",
]
