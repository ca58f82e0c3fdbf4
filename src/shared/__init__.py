"""Shared constants, errors and metrics."""
