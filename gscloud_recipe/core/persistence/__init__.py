"""Audit ledger and install state files."""
