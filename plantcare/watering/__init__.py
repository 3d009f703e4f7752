"""Watering ledger and status engine."""
