"""File helpers for attachment uploads."""
