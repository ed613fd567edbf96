"""Services package: statement import, duplicate detection, aggregation and planning."""
