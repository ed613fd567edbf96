"""Family Finance Ledger: household statement import, budgeting and dashboards."""

__version__ = "1.0.0"
