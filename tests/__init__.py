"""Test suite for the Family Finance Ledger."""
